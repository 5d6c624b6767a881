# Import every table model so SQLModel.metadata knows about all of them.
from app.models.book_tag_model import BookTag  # noqa: F401
from app.models.book_model import Book  # noqa: F401
from app.models.tag_model import Tag  # noqa: F401
from app.models.book_status_model import BookStatus  # noqa: F401
from app.models.rating_model import Rating  # noqa: F401
from app.models.note_model import Note  # noqa: F401
from app.models.audit_log_model import AuditLog  # noqa: F401
from app.models.stats_model import BookPopularityStats, UserReadingStats  # noqa: F401
