import enum


class Role(str, enum.Enum):
    admin = "admin"
    supervisor = "supervisor"


class ProjectStatus(str, enum.Enum):
    planning = "planning"
    ongoing = "ongoing"
    completed = "completed"
    on_hold = "onHold"


class TaskStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in-progress"
    completed = "completed"
    cancelled = "cancelled"


class TaskPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


class MaterialStatus(str, enum.Enum):
    requested = "requested"
    approved = "approved"
    rejected = "rejected"
    received = "received"
    used = "used"


class AttendanceStatus(str, enum.Enum):
    present = "present"
    absent = "absent"
    half_day = "halfDay"


class TransactionType(str, enum.Enum):
    income = "income"
    expense = "expense"


class TransactionStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    cancelled = "cancelled"


class PartyType(str, enum.Enum):
    client = "client"
    vendor = "vendor"
    worker = "worker"
    supplier = "supplier"
    other = "other"


class PaymentType(str, enum.Enum):
    salary = "salary"
    advance = "advance"


# Reserved ledger categories
CATEGORY_WORKER_SALARY = "worker-salary"
CATEGORY_WORKER_ADVANCE = "worker-advance"
CATEGORY_MATERIALS = "materials"
