"""
User-Agent based device detection and desktop/mobile site preferences
"""
import logging
import re

from .cache_utils import DEVICE_DETECTION_CACHE_TTL, cached_query
from .exceptions import ValidationFailed
from .models import UserSitePreference

logger = logging.getLogger(__name__)

MOBILE_BREAKPOINT = 768
MAX_USER_AGENT_LENGTH = 2000
SITE_PREFERENCES = ('auto', 'desktop', 'mobile')

MOBILE_RE = re.compile(
    r"Mobile|iP(hone|od)|Android.*Mobile|Windows Phone|BlackBerry|BB10|Opera Mini|IEMobile|Opera Mobi|webOS|Fennec|"
    r"Minimo|NetFront|Polaris|SEMC-Browser|Skyfire|Symphony|UP\.Browser|Palm|Symbian|Maemo|MIDP|Windows CE|Obigo|"
    r"Dolfin|DoCoMo|KDDI|Vodafone|HTC|LG|MOT|Nokia|Samsung|SonyEricsson|ZTE",
    re.IGNORECASE,
)
TABLET_RE = re.compile(
    r"iPad|Android(?!.*Mobile)|Tablet|Kindle|Silk|PlayBook|Xoom|GT-P|SCH-I|SM-T|SAMSUNG.*Tablet|Nexus (7|9|10)",
    re.IGNORECASE,
)
DESKTOP_RE = re.compile(r"Windows NT|Macintosh|X11|Linux(?!.*Android)", re.IGNORECASE)
BOT_RE = re.compile(
    r"bot|crawler|spider|scraper|Googlebot|Bingbot|Slurp|DuckDuckBot|Baiduspider|YandexBot|Sogou|Exabot|facebot|"
    r"facebookexternalhit|ia_archiver|linkedinbot|twitterbot|pinterest|slack|telegram|whatsapp|discord|curl|wget|"
    r"python-requests|Go-http-client|Java|Apache-HttpClient",
    re.IGNORECASE,
)

BROWSER_PATTERNS = [
    ('Edge', re.compile(r"Edg/[\d.]+|Edge/[\d.]+", re.IGNORECASE)),
    ('Opera', re.compile(r"OPR/[\d.]+|Opera/[\d.]+", re.IGNORECASE)),
    ('Chrome', re.compile(r"Chrome/[\d.]+", re.IGNORECASE)),
    ('Firefox', re.compile(r"Firefox/[\d.]+", re.IGNORECASE)),
    ('Safari', re.compile(r"Safari/[\d.]+(?!.*Chrome)", re.IGNORECASE)),
]

IOS_RE = re.compile(r"iPhone OS ([\d_]+)|iPad.*OS ([\d_]+)", re.IGNORECASE)
ANDROID_OS_RE = re.compile(r"Android ([\d.]+)", re.IGNORECASE)
WINDOWS_RE = re.compile(r"Windows NT ([\d.]+)", re.IGNORECASE)
MACOS_RE = re.compile(r"Mac OS X ([\d_.]+)", re.IGNORECASE)

WINDOWS_VERSIONS = {
    '10.0': '10/11',
    '6.3': '8.1',
    '6.2': '8',
    '6.1': '7',
    '6.0': 'Vista',
    '5.1': 'XP',
}


def _result(user_agent, device_type, device_name='', browser='', operating_system='', recommended='desktop'):
    return {
        'device_type': device_type,
        'device_name': device_name,
        'browser': browser,
        'operating_system': operating_system,
        'is_mobile': device_type == 'mobile',
        'is_tablet': device_type == 'tablet',
        'is_bot': device_type == 'bot',
        'has_touch_capability': device_type in ('mobile', 'tablet'),
        'recommended_site': recommended,
        'raw_user_agent': user_agent,
    }


def detect_browser(user_agent):
    for name, pattern in BROWSER_PATTERNS:
        if pattern.search(user_agent):
            return name
    return 'Unknown'


def detect_operating_system(user_agent):
    match = IOS_RE.search(user_agent)
    if match:
        version = match.group(1) or match.group(2)
        return f"iOS {version.replace('_', '.')}"
    match = ANDROID_OS_RE.search(user_agent)
    if match:
        return f"Android {match.group(1)}"
    match = WINDOWS_RE.search(user_agent)
    if match:
        version = match.group(1)
        return f"Windows {WINDOWS_VERSIONS.get(version, version)}"
    match = MACOS_RE.search(user_agent)
    if match:
        return f"macOS {match.group(1).replace('_', '.')}"
    if 'linux' in user_agent.lower():
        return 'Linux'
    return 'Unknown'


def _mobile_device_name(user_agent):
    lowered = user_agent.lower()
    if 'iphone' in lowered:
        return 'iPhone'
    # Windows Phone agents may also mention Android
    if 'windows phone' in lowered or 'iemobile' in lowered:
        return 'Windows Phone'
    if re.search(r"Android.*Mobile", user_agent, re.IGNORECASE):
        return 'Android Phone'
    if 'blackberry' in lowered:
        return 'BlackBerry'
    return 'Mobile Device'


def _tablet_name(user_agent):
    lowered = user_agent.lower()
    if 'ipad' in lowered:
        return 'iPad'
    if re.search(r"Android(?!.*Mobile)", user_agent, re.IGNORECASE):
        return 'Android Tablet'
    if 'kindle' in lowered:
        return 'Kindle'
    if 'silk' in lowered:
        return 'Amazon Fire'
    return 'Tablet'


@cached_query(cache_ttl=DEVICE_DETECTION_CACHE_TTL, key_prefix='device_detection')
def _classify(user_agent):
    # Bots are never redirected
    if BOT_RE.search(user_agent):
        return _result(user_agent, 'bot', device_name='Bot/Crawler')

    browser = detect_browser(user_agent)
    operating_system = detect_operating_system(user_agent)

    # Tablets are served the mobile site
    if TABLET_RE.search(user_agent):
        return _result(user_agent, 'tablet', _tablet_name(user_agent), browser, operating_system, 'mobile')
    if MOBILE_RE.search(user_agent):
        return _result(user_agent, 'mobile', _mobile_device_name(user_agent), browser, operating_system, 'mobile')
    if DESKTOP_RE.search(user_agent):
        return _result(user_agent, 'desktop', 'Desktop', browser, operating_system, 'desktop')
    return _result(user_agent, 'unknown', 'Unknown', browser, operating_system, 'desktop')


def detect_device(user_agent):
    """Classify a User-Agent string; results are cached per agent for 30 minutes"""
    if not user_agent or not user_agent.strip():
        return _result(user_agent or '', 'unknown')

    if len(user_agent) > MAX_USER_AGENT_LENGTH:
        logger.warning(f"User-Agent string truncated from {len(user_agent)} characters")
        user_agent = user_agent[:MAX_USER_AGENT_LENGTH]

    return dict(_classify(user_agent))


def get_recommended_site(detection, screen_width=None):
    if screen_width is not None and screen_width < MOBILE_BREAKPOINT:
        return 'mobile'
    return detection['recommended_site']


def should_redirect_to_mobile(user_agent, preference=None):
    if preference == 'desktop':
        return False
    if preference == 'mobile':
        return True
    detection = detect_device(user_agent)
    if detection['is_bot']:
        return False
    return detection['is_mobile'] or detection['is_tablet']


def should_redirect_to_desktop(user_agent, preference=None):
    if preference == 'mobile':
        return False
    if preference == 'desktop':
        return True
    detection = detect_device(user_agent)
    if detection['is_bot']:
        return False
    return detection['device_type'] == 'desktop'


def get_preference(user=None, session_id=None):
    if user is not None and user.is_authenticated:
        return UserSitePreference.objects.filter(user=user).first()
    if session_id:
        return UserSitePreference.objects.filter(session_id=session_id, user__isnull=True).first()
    return None


def save_preference(preferred_site, user_agent, user=None, session_id=None):
    """Create or update the site preference for a user or an anonymous session"""
    if preferred_site not in SITE_PREFERENCES:
        raise ValidationFailed("Invalid preference value. Must be 'auto', 'desktop', or 'mobile'")

    detection = detect_device(user_agent)
    if user is not None and user.is_authenticated:
        preference, _ = UserSitePreference.objects.get_or_create(user=user)
        owner = f"user {user.id}"
    else:
        if not session_id:
            raise ValidationFailed('Session ID is required for anonymous preferences')
        preference, _ = UserSitePreference.objects.get_or_create(session_id=session_id, user=None)
        owner = f"anonymous session {session_id}"

    preference.preferred_site = preferred_site
    preference.last_detected_device = detection['device_name'][:20]
    preference.save()
    logger.info(f"Saved site preference for {owner}: {preferred_site}")
    return preference
