# idealplots/models/enums.py
from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"
    AGENT = "agent"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    PENDING_VERIFICATION = "pending_verification"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class City(str, Enum):
    THIRUVANANTHAPURAM = "Thiruvananthapuram"
    KOCHI = "Kochi"
    KOZHIKODE = "Kozhikode"
    THRISSUR = "Thrissur"
    KOLLAM = "Kollam"
    PALAKKAD = "Palakkad"
    ALAPPUZHA = "Alappuzha"
    KOTTAYAM = "Kottayam"
    KANNUR = "Kannur"
    KASARAGOD = "Kasaragod"
    MALAPPURAM = "Malappuram"
    PATHANAMTHITTA = "Pathanamthitta"
    IDUKKI = "Idukki"
    WAYANAD = "Wayanad"


class PreferredPropertyType(str, Enum):
    VILLA = "villa"
    APARTMENT = "apartment"
    HOUSE = "house"
    PLOT = "plot"
    COMMERCIAL = "commercial"


class BedroomOption(str, Enum):
    ONE = "1"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE_PLUS = "5+"


class PropertyType(str, Enum):
    RESIDENTIAL_PLOT = "residential_plot"
    COMMERCIAL_PLOT = "commercial_plot"
    AGRICULTURAL_LAND = "agricultural_land"
    VILLA = "villa"
    APARTMENT = "apartment"
    HOUSE = "house"
    COMMERCIAL_BUILDING = "commercial_building"
    WAREHOUSE = "warehouse"
    SHOP = "shop"
    OFFICE_SPACE = "office_space"

    @property
    def code(self) -> str:
        return PROPERTY_TYPE_CODES.get(self, "PR")

    @property
    def preference(self) -> "PreferredPropertyType":
        """The buyer-preference bucket a listing type is matched against."""
        return PROPERTY_TYPE_PREFERENCES[self]


PROPERTY_TYPE_CODES = {
    PropertyType.RESIDENTIAL_PLOT: "RP",
    PropertyType.COMMERCIAL_PLOT: "CP",
    PropertyType.AGRICULTURAL_LAND: "AL",
    PropertyType.VILLA: "VL",
    PropertyType.APARTMENT: "AP",
    PropertyType.HOUSE: "HS",
    PropertyType.COMMERCIAL_BUILDING: "CB",
    PropertyType.WAREHOUSE: "WH",
    PropertyType.SHOP: "SH",
    PropertyType.OFFICE_SPACE: "OS",
}

PROPERTY_TYPE_PREFERENCES = {
    PropertyType.RESIDENTIAL_PLOT: PreferredPropertyType.PLOT,
    PropertyType.COMMERCIAL_PLOT: PreferredPropertyType.PLOT,
    PropertyType.AGRICULTURAL_LAND: PreferredPropertyType.PLOT,
    PropertyType.VILLA: PreferredPropertyType.VILLA,
    PropertyType.APARTMENT: PreferredPropertyType.APARTMENT,
    PropertyType.HOUSE: PreferredPropertyType.HOUSE,
    PropertyType.COMMERCIAL_BUILDING: PreferredPropertyType.COMMERCIAL,
    PropertyType.WAREHOUSE: PreferredPropertyType.COMMERCIAL,
    PropertyType.SHOP: PreferredPropertyType.COMMERCIAL,
    PropertyType.OFFICE_SPACE: PreferredPropertyType.COMMERCIAL,
}


class ListingStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    ACTIVE = "active"
    SOLD = "sold"
    RENTED = "rented"
    WITHDRAWN = "withdrawn"
    EXPIRED = "expired"
    REJECTED = "rejected"


class ApprovalType(str, Enum):
    PROPERTY_LISTING = "property_listing"
    USER_VERIFICATION = "user_verification"
    AGENT_APPLICATION = "agent_application"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_CHANGES = "needs_changes"


OPEN_APPROVAL_STATUSES = (ApprovalStatus.PENDING, ApprovalStatus.UNDER_REVIEW)


class ApprovalPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class EnquiryStatus(str, Enum):
    NEW = "new"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class EnquiryPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NoteType(str, Enum):
    INTERNAL = "internal"
    CLIENT_COMMUNICATION = "client_communication"
    SYSTEM = "system"
    FOLLOW_UP_REMINDER = "follow_up_reminder"


class CommunicationMethod(str, Enum):
    PHONE = "phone"
    EMAIL = "email"
    WHATSAPP = "whatsapp"
    IN_PERSON = "in_person"
    SYSTEM = "system"


class AssignmentType(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"
    USER_REQUESTED = "user_requested"


class AssignmentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    COMPLETED = "completed"


class ImageType(str, Enum):
    GALLERY = "gallery"
    FLOOR_PLAN = "floor_plan"
    LOCATION_MAP = "location_map"


class SettingType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"


class AuditSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class NotificationChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
