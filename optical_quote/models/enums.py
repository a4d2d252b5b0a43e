from enum import Enum


class QuoteStatus(str, Enum):
    BUILDING = "building"
    DRAFT = "draft"
    PRESENTED = "presented"
    SIGNED = "signed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class LayerId(str, Enum):
    EXAM = "exam"
    EYEGLASSES = "eyeglasses"
    CONTACTS = "contacts"


class Carrier(str, Enum):
    VSP = "VSP"
    EYEMED = "EyeMed"
    SPECTERA = "Spectera"
    NONE = "none"


class BenefitCategory(str, Enum):
    FRAME = "frame"
    LENS = "lens"
    ENHANCEMENT = "enhancement"
    EXAM = "exam"
    CONTACTS = "contacts"


class BenefitFrequency(str, Enum):
    ANNUAL = "annual"
    BIENNIAL = "biennial"


class FormularyTier(str, Enum):
    TIER_1 = "tier_1"
    TIER_2 = "tier_2"
    TIER_3 = "tier_3"


class LensType(str, Enum):
    SINGLE_VISION = "single-vision"
    PROGRESSIVE = "progressive"
    BIFOCAL = "bifocal"
    COMPUTER = "computer"


class LensMaterial(str, Enum):
    PLASTIC = "plastic"
    POLYCARBONATE = "polycarbonate"
    TRIVEX = "trivex"
    HIGH_INDEX = "high-index"


class WearSchedule(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    EXTENDED = "extended"


class DiscountKind(str, Enum):
    ANNUAL_SUPPLY = "annual_supply"
    MANUFACTURER_REBATE = "manufacturer_rebate"
    SECOND_PAIR = "second_pair"


class SecondPairDiscountType(str, Enum):
    SAME_DAY_50 = "SAME_DAY_50"
    THIRTY_DAY_30 = "THIRTY_DAY_30"
    MANAGER_OVERRIDE = "MANAGER_OVERRIDE"


class SignatureSlot(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"


class PresentationMethod(str, Enum):
    IN_PERSON = "in_person"
    TABLET = "tablet"
    PRINTED = "printed"
    EMAIL = "email"


class TransitionCategory(str, Enum):
    USER_ACTION = "USER_ACTION"
    SYSTEM_ACTION = "SYSTEM_ACTION"


class WarningCode(str, Enum):
    INCOMPLETE_SELECTION = "INCOMPLETE_SELECTION"
    UNKNOWN_BENEFIT_CATEGORY = "UNKNOWN_BENEFIT_CATEGORY"
    INSURANCE_LOOKUP_FAILED = "INSURANCE_LOOKUP_FAILED"
    EXTERNAL_SERVICE_FAILURE = "EXTERNAL_SERVICE_FAILURE"
