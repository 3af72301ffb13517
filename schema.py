# schema.py
SCHEMA_VERSION = "2025-11-04"

# Ownership tree layout (pixels)
LEAF_WIDTH = 250
COMPACT_CHILD_WIDTH = 200
COMPACT_CHILD_THRESHOLD = 6     # more children than this -> compact spacing
LEVEL_HEIGHT = 150
ROOT_Y = 50

# Node box geometry used by the SVG renderer
BOX_WIDTH = 200
BOX_HEIGHT = 70
LABEL_MAX_CHARS = 20
LABEL_MAX_LINES = 2

VIRTUAL_ROOT_NAME = "Ultimate Beneficial Owners"

# Box colours by depth (root first), clamped for deeper levels
DEPTH_COLORS = [
    "#1e40af",  # blue-800 (root)
    "#3b82f6",  # blue-500
    "#059669",  # green-600
    "#10b981",  # green-500
    "#f59e0b",  # yellow-500
    "#f97316",  # orange-500
    "#ef4444",  # red-500
    "#dc2626",  # red-600
]

UNKNOWN_COUNTRY_FLAG = "🌍"
UNKNOWN_JURISDICTION_MARKER = "❓"

COUNTRY_FLAGS = {
    "ENGLAND": "🏴󠁧󠁢󠁥󠁮󠁧󠁿",
    "SCOTLAND": "🏴󠁧󠁢󠁳󠁣󠁴󠁿",
    "WALES": "🏴󠁧󠁢󠁷󠁬󠁳󠁿",
    "NORTHERN IRELAND": "🇬🇧",
    "UNITED KINGDOM": "🇬🇧",
    "UK": "🇬🇧",
    "GERMANY": "🇩🇪",
    "FRANCE": "🇫🇷",
    "SPAIN": "🇪🇸",
    "ITALY": "🇮🇹",
    "NETHERLANDS": "🇳🇱",
    "BELGIUM": "🇧🇪",
    "IRELAND": "🇮🇪",
    "LUXEMBOURG": "🇱🇺",
    "SWITZERLAND": "🇨🇭",
    "AUSTRIA": "🇦🇹",
    "DENMARK": "🇩🇰",
    "SWEDEN": "🇸🇪",
    "NORWAY": "🇳🇴",
    "FINLAND": "🇫🇮",
    "POLAND": "🇵🇱",
    "CZECH REPUBLIC": "🇨🇿",
    "PORTUGAL": "🇵🇹",
    "GREECE": "🇬🇷",
    "USA": "🇺🇸",
    "UNITED STATES": "🇺🇸",
    "CANADA": "🇨🇦",
    "AUSTRALIA": "🇦🇺",
    "NEW ZEALAND": "🇳🇿",
    "JAPAN": "🇯🇵",
    "CHINA": "🇨🇳",
    "INDIA": "🇮🇳",
    "SINGAPORE": "🇸🇬",
    "HONG KONG": "🇭🇰",
    "SOUTH KOREA": "🇰🇷",
    "BRAZIL": "🇧🇷",
    "MEXICO": "🇲🇽",
    "ARGENTINA": "🇦🇷",
    "SOUTH AFRICA": "🇿🇦",
    "RUSSIA": "🇷🇺",
    "TURKEY": "🇹🇷",
    "ISRAEL": "🇮🇱",
    "UAE": "🇦🇪",
    "SAUDI ARABIA": "🇸🇦",
}

# Screening list name normalisation
COMPANY_NAME_TOKENS = ("LIMITED", "LTD", "PLC", "LLP")
COURTESY_TITLES = (
    "MR", "MRS", "MS", "MISS", "DR", "SIR", "DAME",
    "LORD", "LADY", "PROFESSOR", "PROF",
)

# Backend screening_list categories consumed by the consolidator (processing order)
SCREENING_SOURCES = [
    "ownership_chain",
    "governance_and_control",
    "ubos",
    "trusts",
    "entity",
]

CONSOLIDATED_CSV_HEADERS = [
    "Name",
    "Type",
    "Roles",
    "Nationality",
    "Date of Birth",
    "Company Number",
    "Linked Entities",
]
