from enum import Enum


class LeadConfigurationStatusEnum(str, Enum):
    draft = "draft"
    approved = "approved"
    provisioned = "provisioned"


class ShopStatusEnum(str, Enum):
    draft = "draft"
    live = "live"
    closed = "closed"


class ImageTypeEnum(str, Enum):
    front = "front"
    back = "back"
    side = "side"


class PrintPositionEnum(str, Enum):
    front = "front"
    back = "back"
    side = "side"
