"""Hierarchical entity keys; every entity is scoped under its company."""


def company_key(company_id: str) -> str:
    return f"companies/{company_id}"


def user_key(company_id: str, user_id: str) -> str:
    return f"{company_key(company_id)}/users/{user_id}"


def invite_key(invite_id: str) -> str:
    return f"invites/{invite_id}"


def dashboard_key(company_id: str, dashboard_id: str) -> str:
    return f"{company_key(company_id)}/dashboards/{dashboard_id}"


def applicant_key(company_id: str, dashboard_id: str, applicant_id: str) -> str:
    return f"{dashboard_key(company_id, dashboard_id)}/applicants/{applicant_id}"


def document_key(company_id: str, dashboard_id: str, applicant_id: str, slot: str) -> str:
    return f"{applicant_key(company_id, dashboard_id, applicant_id)}/docs/{slot}"


def message_key(company_id: str, dashboard_id: str, applicant_id: str, message_id: str) -> str:
    return f"{applicant_key(company_id, dashboard_id, applicant_id)}/messages/{message_id}"


def action_key(company_id: str, action_id: str) -> str:
    return f"{company_key(company_id)}/actions/{action_id}"


def admin_check_key(admin_check_id: str) -> str:
    return f"adminChecks/{admin_check_id}"


def worker_doc_key(worker_doc_id: str) -> str:
    return f"workerDocs/{worker_doc_id}"


def form_id(company_id: str, dashboard_id: str, applicant_id: str) -> str:
    # the form is a projection of the applicant record, so it shares its key
    return applicant_key(company_id, dashboard_id, applicant_id)
