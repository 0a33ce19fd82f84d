"""
Centralized configuration — env vars, category catalog, submission policy.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Slack notifications ──────────────────────────────────────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── Submission worker ────────────────────────────────────────────────────────
SUBMISSION_INTERVAL_SECONDS = int(os.getenv('SUBMISSION_INTERVAL_SECONDS', 15 * 60))
SUBMISSION_MAX_RETRIES = int(os.getenv('SUBMISSION_MAX_RETRIES', 3))
SUBMISSION_THROTTLE_SECONDS = float(os.getenv('SUBMISSION_THROTTLE_SECONDS', 1.0))
SUBMISSION_QUEUE_NAME = os.getenv('SUBMISSION_QUEUE_NAME', 'submissions')
SUBMISSION_SOURCE = 'TREC Inspection'

# ── Partner HTTP ─────────────────────────────────────────────────────────────
PARTNER_CONNECT_TIMEOUT = float(os.getenv('PARTNER_CONNECT_TIMEOUT', 5))
PARTNER_READ_TIMEOUT = float(os.getenv('PARTNER_READ_TIMEOUT', 20))
PARTNER_TOTAL_TIMEOUT = float(os.getenv('PARTNER_TOTAL_TIMEOUT', 30))
PARTNER_BREAKER_THRESHOLD = int(os.getenv('PARTNER_BREAKER_THRESHOLD', 5))
PARTNER_BREAKER_RESET_SECONDS = int(os.getenv('PARTNER_BREAKER_RESET_SECONDS', 300))
PARTNER_CATALOG_PATH = os.getenv(
    'PARTNER_CATALOG_PATH',
    os.path.join(os.path.dirname(os.path.dirname(__file__)), 'partners.yaml'),
)

# ── Consent capture ──────────────────────────────────────────────────────────
CONSENT_TEXT_VERSION = os.getenv('CONSENT_TEXT_VERSION', 'v1.0')

# ── Lead categories (closed set, shared by seeding, eligibility and the UI) ──
LEAD_CATEGORIES = [
    'utility_connect',
    'internet_cable_phone',
    'home_warranty',
    'home_security',
    'insurance_home_auto',
    'insurance_life',
    'solar',
    'ev_charger',
    'pest_control',
    'moving_companies',
    'cleaning_services',
    'lawn_service',
]

CATEGORY_LABELS = {
    'utility_connect':      'Utility Connect',
    'internet_cable_phone': 'Internet/Cable/Phone',
    'home_warranty':        'Home Warranty',
    'home_security':        'Home Security',
    'insurance_home_auto':  'Home & Auto Insurance',
    'insurance_life':       'Life Insurance',
    'solar':                'Solar Installation',
    'ev_charger':           'EV Charger Installation',
    'pest_control':         'Pest Control',
    'moving_companies':     'Moving Services',
    'cleaning_services':    'Cleaning Services',
    'lawn_service':         'Lawn & Landscaping',
}

# ── Consent channels ─────────────────────────────────────────────────────────
CONSENT_CHANNELS = ['email', 'phone', 'sms']
CONSENT_TYPES = ['global_email', 'one_to_one']
REVOCATION_METHODS = ['unsubscribe_link', 'opt_out_request', 'admin_action']

# ── Submission status values ─────────────────────────────────────────────────
# ── Payout terms → days until the partner pays out ───────────────────────────
PAYOUT_TERMS_DAYS = {
    'net_30': 30,
    'net_60': 60,
    'net_90': 90,
}
DEFAULT_PAYOUT_DAYS = 30

# ── Contractor marketplace lane ──────────────────────────────────────────────
CONTRACTOR_CATEGORIES = [
    'hvac',
    'electrical',
    'plumbing',
    'roofing',
    'foundation',
    'pest_control',
    'home_warranty',
    'insurance',
    'general_contractor',
    'landscaping',
    'flooring',
    'painting',
    'windows_doors',
]

CONTRACTOR_LEAD_SOURCES = [
    'inspection_flagged',
    'inspection_referral',
    'direct_inquiry',
    'website',
    'phone_call',
    'partner_referral',
]

CONTRACTOR_LEAD_STATUSES = [
    'new',
    'contacted',
    'qualified',
    'quoted',
    'won',
    'lost',
    'closed',
]

LEAD_PRIORITIES = ['low', 'medium', 'high', 'urgent']

# ── Distribution ─────────────────────────────────────────────────────────────
DISTRIBUTION_LANES = ['partner', 'contractor']
DISTRIBUTION_METHODS = ['round_robin', 'score_based', 'priority_list']

DEFAULT_SCORING_WEIGHTS = {
    'rating': 0.3,
    'conversion': 0.4,
    'response_time': 0.2,   # reserved, not scored yet
    'availability': 0.1,
}


def load_settings(overrides=None):
    """Snapshot the module-level settings into a dict, applying overrides."""
    settings = {
        'DATABASE_URL': DATABASE_URL,
        'REDIS_URL': REDIS_URL,
        'SLACK_WEBHOOK_URL': SLACK_WEBHOOK_URL,
        'SUBMISSION_INTERVAL_SECONDS': SUBMISSION_INTERVAL_SECONDS,
        'SUBMISSION_MAX_RETRIES': SUBMISSION_MAX_RETRIES,
        'SUBMISSION_THROTTLE_SECONDS': SUBMISSION_THROTTLE_SECONDS,
        'SUBMISSION_QUEUE_NAME': SUBMISSION_QUEUE_NAME,
        'PARTNER_CONNECT_TIMEOUT': PARTNER_CONNECT_TIMEOUT,
        'PARTNER_READ_TIMEOUT': PARTNER_READ_TIMEOUT,
        'PARTNER_TOTAL_TIMEOUT': PARTNER_TOTAL_TIMEOUT,
        'PARTNER_BREAKER_THRESHOLD': PARTNER_BREAKER_THRESHOLD,
        'PARTNER_BREAKER_RESET_SECONDS': PARTNER_BREAKER_RESET_SECONDS,
        'PARTNER_CATALOG_PATH': PARTNER_CATALOG_PATH,
        'CONSENT_TEXT_VERSION': CONSENT_TEXT_VERSION,
    }
    if overrides:
        settings.update(overrides)
    return settings
