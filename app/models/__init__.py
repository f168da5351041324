from app.models.cleaning_plan import CleaningPlan
from app.models.company import Company
from app.models.customer import Customer
from app.models.customer_signature import CustomerSignature
from app.models.employee import Employee
from app.models.event_outbox import EventOutbox
from app.models.invoice import Invoice, InvoiceItem
from app.models.job import Job
from app.models.job_assignment import JobAssignment
from app.models.job_check_in import JobCheckIn
from app.models.job_event import JobEvent
from app.models.job_photo import JobPhoto
from app.models.job_task import JobTask
from app.models.user import User

__all__ = [
    "CleaningPlan",
    "Company",
    "Customer",
    "CustomerSignature",
    "Employee",
    "EventOutbox",
    "Invoice",
    "InvoiceItem",
    "Job",
    "JobAssignment",
    "JobCheckIn",
    "JobEvent",
    "JobPhoto",
    "JobTask",
    "User",
]
