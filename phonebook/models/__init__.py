"""資料庫模型 (Database Models)"""

from phonebook.core.database import Base
from phonebook.models.user_account import UserAccount, UserType
from phonebook.models.department import Department, SubDepartment
from phonebook.models.user_data import UserData
from phonebook.models.ticket import Ticket, TicketStatus
from phonebook.models.refresh_token import RefreshToken
from phonebook.models.update_marker import UpdateMarker, MARKER_ID

__all__ = [
    "Base",
    "UserAccount",
    "UserType",
    "Department",
    "SubDepartment",
    "UserData",
    "Ticket",
    "TicketStatus",
    "RefreshToken",
    "UpdateMarker",
    "MARKER_ID",
]
