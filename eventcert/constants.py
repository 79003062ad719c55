from typing import NamedTuple


class CertificateTemplate(NamedTuple):
    id: str
    name: str
    description: str
    theme: str
    orientation: str


class CertificateField(NamedTuple):
    id: str
    label: str
    required: bool


EVENT_CATEGORIES = ["Tech", "Business", "Education", "Art"]

STATUS_NOT_SENT = "Not Sent"
STATUS_SENT = "Sent"
STATUS_FAILED = "Failed"
CERTIFICATE_STATUSES = [STATUS_NOT_SENT, STATUS_SENT, STATUS_FAILED]

CHANNEL_EMAIL = "email"
CHANNEL_WHATSAPP = "whatsapp"
DELIVERY_CHANNELS = [CHANNEL_EMAIL, CHANNEL_WHATSAPP]

AI_TEMPLATE_ID = "ai"

CERTIFICATE_TEMPLATES = [
    CertificateTemplate(
        "classic",
        "Classic Professional",
        "A timeless design for formal recognition.",
        "blue",
        "portrait",
    ),
    CertificateTemplate(
        "modern",
        "Modern Minimalist",
        "A sleek, dark-themed design for contemporary events.",
        "dark",
        "portrait",
    ),
    CertificateTemplate(
        "web3",
        "Web3 Verifiable",
        "Includes a QR code and hash for blockchain verification.",
        "green",
        "landscape",
    ),
    CertificateTemplate(
        "creative",
        "Creative Design",
        "A vibrant and artistic template for creative achievements.",
        "pink",
        "portrait",
    ),
    CertificateTemplate(
        AI_TEMPLATE_ID,
        "AI Generated Design",
        "A unique background synthesized from your own prompt.",
        "ai",
        "landscape",
    ),
]

TEMPLATES_BY_ID = {tmpl.id: tmpl for tmpl in CERTIFICATE_TEMPLATES}

CERTIFICATE_FIELDS = [
    CertificateField("name", "Participant Name", True),
    CertificateField("eventName", "Event Name", True),
    CertificateField("date", "Completion Date", True),
    CertificateField("issuer", "Issuer", False),
    CertificateField("web3", "Web3 Hash", False),
    CertificateField("score", "Score/Grade", False),
    CertificateField("duration", "Event Duration", False),
    CertificateField("signature", "Digital Signature", False),
]

FIELD_IDS = [field.id for field in CERTIFICATE_FIELDS]
REQUIRED_FIELD_IDS = [field.id for field in CERTIFICATE_FIELDS if field.required]

WIZARD_STEP_TITLES = [
    "Event Selection",
    "Template Selection",
    "Field Customization",
    "Delivery Methods",
    "Generate & Track",
]

CATEGORY_BADGES = {
    "Tech": "badge-blue",
    "Business": "badge-green",
    "Art": "badge-pink",
    "Education": "badge-yellow",
}

STATUS_BADGES = {
    STATUS_SENT: "badge-green",
    STATUS_NOT_SENT: "badge-yellow",
    STATUS_FAILED: "badge-red",
}

ISSUER_NAME = "EventCert"
