from payroll_admin.models.audit_log import AuditLog
from payroll_admin.models.employee import Employee
from payroll_admin.models.integration import (
    AlertRule,
    AttendanceRecord,
    IntegrationAlert,
    IntegrationHealthCheck,
    IntegrationToken,
    NotificationChannel,
    SyncLog,
)
from payroll_admin.models.pay_group import EmployeePayGroup, PayGroup, PayGroupMaster, PaygroupEmployee
from payroll_admin.models.pay_item import PayItem
from payroll_admin.models.pay_run import PayRun
from payroll_admin.models.rbac import RbacAssignment, RbacGrant, RbacPermission, RbacRole, RbacRolePermission
from payroll_admin.models.user_profile import UserProfile

__all__ = [
    "AlertRule",
    "AttendanceRecord",
    "AuditLog",
    "Employee",
    "EmployeePayGroup",
    "IntegrationAlert",
    "IntegrationHealthCheck",
    "IntegrationToken",
    "NotificationChannel",
    "PayGroup",
    "PayGroupMaster",
    "PayItem",
    "PayRun",
    "PaygroupEmployee",
    "RbacAssignment",
    "RbacGrant",
    "RbacPermission",
    "RbacRole",
    "RbacRolePermission",
    "SyncLog",
    "UserProfile",
]
