# /carehome/api/routes.py

from . import api_bp
from carehome.extensions import limiter
from carehome.utils.audit_util import AuditCategory
from carehome.utils.decorators import gated
from carehome.utils.permission_util import Capability
from .controllers import (
    auth_controller, staff_controller, resident_controller,
    daily_log_controller, care_plan_controller, report_controller, task_controller,
)
from .controllers.daily_log_controller import load_daily_log_ref, load_daily_log_reader_ref
from .controllers.resident_controller import load_resident_ref
from .controllers.staff_controller import load_staff_ref


# --- Authentication Endpoints ---
@api_bp.route('/auth/login', methods=['POST'])
@limiter.limit("5 per 15 minutes")
def login():
    return auth_controller.login_staff()

@api_bp.route('/auth/refresh', methods=['POST'])
@limiter.limit("30 per hour")
def refresh():
    return auth_controller.refresh_tokens()

@api_bp.route('/auth/logout', methods=['POST'])
@gated("STAFF_LOGOUT", category=AuditCategory.AUTHENTICATION)
def logout(principal):
    return auth_controller.logout_staff(principal)

@api_bp.route('/auth/change-password', methods=['POST'])
@limiter.limit("5 per hour")
@gated("PASSWORD_CHANGE", "staff", category=AuditCategory.AUTHENTICATION)
def change_password(principal):
    return auth_controller.change_staff_password(principal)

@api_bp.route('/auth/verify-token', methods=['GET'])
@gated("VERIFY_TOKEN", category=AuditCategory.AUTHENTICATION)
def verify_token(principal):
    return auth_controller.verify_token(principal)


# --- Staff Endpoints ---
@api_bp.route('/staff', methods=['POST'])
@limiter.limit("20 per hour")
@gated("STAFF_REGISTRATION", "staff", capability=Capability.MANAGE_STAFF)
def create_staff(principal):
    return staff_controller.create_staff(principal)

@api_bp.route('/staff', methods=['GET'])
@gated("VIEW_ALL_STAFF", "staff", capability=Capability.VIEW_REPORTS)
def list_staff(principal):
    return staff_controller.list_staff(principal)

@api_bp.route('/staff/<int:staff_id>', methods=['GET'])
@gated("VIEW_STAFF_DETAIL", "staff", resource=load_staff_ref)
def get_staff(staff_id, principal):
    return staff_controller.get_staff(staff_id, principal)

@api_bp.route('/staff/<int:staff_id>/status', methods=['PATCH'])
@gated("UPDATE_STAFF_STATUS", "staff", capability=Capability.MANAGE_STAFF, resource=load_staff_ref)
def update_staff_status(staff_id, principal):
    return staff_controller.update_staff_status(staff_id, principal)

@api_bp.route('/staff/<int:staff_id>/unlock', methods=['POST'])
@gated("UNLOCK_STAFF_ACCOUNT", "staff", capability=Capability.MANAGE_STAFF, resource=load_staff_ref)
def unlock_staff(staff_id, principal):
    return staff_controller.unlock_staff(staff_id, principal)


# --- Resident Endpoints ---
@api_bp.route('/residents', methods=['GET'])
@gated("VIEW_ALL_RESIDENTS", "residents", capability=Capability.VIEW_RESIDENTS)
def list_residents(principal):
    return resident_controller.list_residents(principal)

@api_bp.route('/residents', methods=['POST'])
@gated("RESIDENT_ADMISSION", "residents", capability=Capability.MANAGE_RESIDENTS)
def create_resident(principal):
    return resident_controller.create_resident(principal)

@api_bp.route('/residents/<int:resident_id>', methods=['GET'])
@gated("VIEW_RESIDENT_DETAIL", "residents", capability=Capability.VIEW_RESIDENTS, resource=load_resident_ref)
def get_resident(resident_id, principal):
    return resident_controller.get_resident(resident_id, principal)

@api_bp.route('/residents/<int:resident_id>', methods=['PUT'])
@gated("UPDATE_RESIDENT", "residents", capability=Capability.MANAGE_RESIDENTS, resource=load_resident_ref)
def update_resident(resident_id, principal):
    return resident_controller.update_resident(resident_id, principal)

@api_bp.route('/residents/<int:resident_id>/staff', methods=['PUT'])
@gated("ASSIGN_RESIDENT_STAFF", "residents", capability=Capability.MANAGE_RESIDENTS, resource=load_resident_ref)
def assign_resident_staff(resident_id, principal):
    return resident_controller.assign_staff(resident_id, principal)


# --- Daily Log Endpoints ---
@api_bp.route('/residents/<int:resident_id>/daily-logs', methods=['POST'])
@gated("CREATE_DAILY_LOG", "residents", capability=Capability.CREATE_LOGS, resource=load_resident_ref)
def create_daily_log(resident_id, principal):
    return daily_log_controller.create_daily_log(resident_id, principal)

@api_bp.route('/residents/<int:resident_id>/daily-logs', methods=['GET'])
@gated("VIEW_DAILY_LOGS", "residents", capability=Capability.VIEW_RESIDENTS, resource=load_resident_ref)
def list_daily_logs(resident_id, principal):
    return daily_log_controller.list_daily_logs(resident_id, principal)

@api_bp.route('/daily-logs/<int:log_id>', methods=['GET'])
@gated("VIEW_DAILY_LOG_DETAIL", "daily_logs", capability=Capability.VIEW_RESIDENTS, resource=load_daily_log_reader_ref)
def get_daily_log(log_id, principal):
    return daily_log_controller.get_daily_log(log_id, principal)

@api_bp.route('/daily-logs/<int:log_id>', methods=['PUT'])
@gated("UPDATE_DAILY_LOG", "daily_logs", capability=Capability.CREATE_LOGS, resource=load_daily_log_ref)
def update_daily_log(log_id, principal):
    return daily_log_controller.update_daily_log(log_id, principal)

@api_bp.route('/daily-logs/<int:log_id>', methods=['DELETE'])
@gated("DELETE_DAILY_LOG", "daily_logs", capability=Capability.MANAGE_RESIDENTS, resource=load_daily_log_ref)
def delete_daily_log(log_id, principal):
    return daily_log_controller.delete_daily_log(log_id, principal)


# --- Care Plan Endpoints ---
@api_bp.route('/residents/<int:resident_id>/care-plans', methods=['GET'])
@gated("VIEW_CARE_PLANS", "residents", capability=Capability.VIEW_CARE_PLANS, resource=load_resident_ref)
def list_care_plans(resident_id, principal):
    return care_plan_controller.list_care_plans(resident_id, principal)

@api_bp.route('/residents/<int:resident_id>/care-plans', methods=['POST'])
@gated("CREATE_CARE_PLAN", "residents", capability=Capability.CREATE_CARE_PLANS, resource=load_resident_ref)
def create_care_plan(resident_id, principal):
    return care_plan_controller.create_care_plan(resident_id, principal)


# --- Compliance Reports ---
@api_bp.route('/reports/audit', methods=['GET'])
@gated("VIEW_AUDIT_REPORT", "audit", capability=Capability.VIEW_AUDIT)
def audit_report(principal):
    return report_controller.get_audit_report(principal)


# --- Task Endpoints ---
@api_bp.route('/tasks', methods=['GET'])
@gated("VIEW_TASKS", "tasks", capability=Capability.COMPLETE_TASKS)
def list_tasks(principal):
    return task_controller.list_tasks(principal)
