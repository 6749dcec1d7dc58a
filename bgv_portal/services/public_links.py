from bgv_portal.core.config import settings
from bgv_portal.core.workflow import ADDRESS_VERIFICATION, DOCUMENT_COLLECTION

# Candidate page segment per record kind.
LINK_SEGMENTS = {
    ADDRESS_VERIFICATION: "address-verifications",
    DOCUMENT_COLLECTION: "document-collections",
}


def build_public_path(path: str) -> str:
    base_path = (settings.public_app_base_path or "").strip()
    if base_path and not base_path.startswith("/"):
        base_path = f"/{base_path}"
    base_path = base_path.rstrip("/")
    if path and not path.startswith("/"):
        path = f"/{path}"
    full_path = f"{base_path}{path}" if base_path else path
    return full_path


def build_public_link(path: str) -> str:
    base = (settings.public_app_origin or "").rstrip("/")
    full_path = build_public_path(path)
    return f"{base}{full_path}" if base else full_path


def candidate_link(kind: str, token: str) -> str:
    return build_public_link(f"/{LINK_SEGMENTS[kind]}/{token}")
