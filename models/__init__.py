from models.base_model import Base, BaseModel
from models.db_storage import DBStorage
from models.refresh_token import RefreshToken
from models.user import User

__all__ = ["Base", "BaseModel", "DBStorage", "RefreshToken", "User"]
