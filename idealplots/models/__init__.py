from .user import User
from .property_listing import PropertyListing
from .pending_approval import (
    AgentApplication, ApprovalTarget, ListingApproval, PendingApproval, UserVerification,
)
from .user_favorite import UserFavorite
from .enquiry import Enquiry
from .enquiry_note import EnquiryNote
from .user_agent_assignment import UserAgentAssignment
from .property_image import PropertyImage
from .property_view import PropertyView
from .system_setting import SystemSetting
from .audit_log import AuditLog
from .admin_created_notification import AdminCreatedNotification

__all__ = [
    "User", "PropertyListing", "PendingApproval", "ApprovalTarget", "ListingApproval",
    "UserVerification", "AgentApplication", "UserFavorite", "Enquiry", "EnquiryNote",
    "UserAgentAssignment", "PropertyImage", "PropertyView", "SystemSetting", "AuditLog",
    "AdminCreatedNotification",
]
