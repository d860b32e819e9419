from auditdesk.db.database import Base, get_db, AsyncSessionLocal, session_scope

__all__ = ["Base", "get_db", "AsyncSessionLocal", "session_scope"]
