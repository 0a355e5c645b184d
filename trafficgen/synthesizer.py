"""Event synthesizer producing one complete user-behavior record per call.

Field distributions are modeled on a mid-size Korean e-commerce app: mostly
pageviews and clicks, a thin layer of purchases, a mobile-heavy device mix,
and the occasional 4xx/5xx.  Fields that belong together are drawn together:
the page depends on the action, the product id on the page, the OS and user
agent on the device, and the success flag on the status code.

Every random draw goes through the caller's random.Random, including the
identifiers, so a seeded run reproduces the same records.  Timestamps are
the exception: they are offsets from the "now" the caller passes in, so only
a fixed clock makes them repeat.
"""

import random
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone

from trafficgen.distributions import DiscreteDistribution as D
from trafficgen.population import SimulatedUser

SCHEMA_VERSION = 2
CURRENCY = "KRW"
LOCALE = "ko-KR"
TIMEZONE = "Asia/Seoul"

CLIENT_ERRORS = (400, 401, 403, 404)
SERVER_ERRORS = (500, 502, 503, 504)
STATUS_CODES = frozenset((200,) + CLIENT_ERRORS + SERVER_ERRORS)

# Event time spreads around "now"; ingest lags event time.
_EVENT_OFFSET_MS = (-90_000, 30_000)
_INGEST_LAG_MS = (5, 500)

_LOGGED_IN_RATE = 0.75
_UTM_TAGGED_RATE = 0.70
_TRUNCNORM_ATTEMPTS = 16


# ---------------------------------------------------------------------------
# Categorical tables
# ---------------------------------------------------------------------------

SERVICES = D.uniform(["web-frontend", "checkout", "catalog", "auth"])
ACTIONS = D([("pageview", 40), ("click", 30), ("view_item", 15),
             ("add_to_cart", 10), ("purchase", 5)])

_SITE_PAGES = D.uniform([
    "/", "/search?q=abc", "/search?q=shoes", "/category/men", "/category/women",
    "/product/42", "/product/77", "/cart", "/checkout",
])
_CART_PAGES = D([("/product/42", 40), ("/product/77", 30),
                 ("/cart", 20), ("/checkout", 10)])
_ITEM_PAGES = D([("/product/42", 60), ("/product/77", 40)])
_PAGES_BY_ACTION = {
    "purchase": _CART_PAGES,
    "add_to_cart": _CART_PAGES,
    "view_item": _ITEM_PAGES,
}
# Half of non-product pages carry no product context at all.
_LOOSE_PRODUCT_IDS = D([("", 50), ("42", 20), ("77", 15), ("13", 10), ("108", 5)])

DEVICES = D([("ios", 40), ("android", 40), ("web", 20)])
_APP_VERSIONS = D([("5.2.0", 20), ("5.3.1", 60), ("5.4.0", 20)])
_OS_VERSIONS = {
    "ios": D([("16.7", 10), ("17.0", 20), ("17.4", 25), ("17.5", 30), ("18.0", 15)]),
    "android": D([("12", 20), ("13", 45), ("14", 35)]),
    "web": D([("12.7", 20), ("13.6", 40), ("14.5", 40)]),
}
_OS_NAMES = {"ios": "iOS", "android": "Android", "web": "macOS"}
_USER_AGENTS = {
    "ios": ("Mozilla/5.0 (iPhone; CPU iPhone OS {v} like Mac OS X) "
            "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 "
            "Mobile/15E148 Safari/604.1"),
    "android": ("Mozilla/5.0 (Linux; Android {v}) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/124.0 Mobile Safari/537.36"),
    "web": ("Mozilla/5.0 (Macintosh; Intel Mac OS X {v}) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"),
}

REGIONS = D([("KR", 90), ("US", 7), ("JP", 3)])
NETWORKS = D([("wifi", 80), ("cellular", 19), ("ethernet", 1)])

_STATUS_CLASSES = D([("ok", 92), ("client", 4), ("server", 4)])
_CLIENT_ERRORS = D.uniform(CLIENT_ERRORS)
_SERVER_ERRORS = D.uniform(SERVER_ERRORS)

REFERRERS = D([("/", 10), ("/search?q=abc", 30), ("/search?q=best+deal", 20),
               ("/category/men", 15), ("/category/women", 15), ("", 10)])
UTM_SOURCES = D.uniform(["naver", "google", "kakao", "facebook", "newsletter"])
UTM_MEDIUMS = D([("cpc", 50), ("organic", 20), ("email", 15), ("social", 15)])
UTM_CAMPAIGNS = D.uniform(["fall_sale", "brand_kw", "retargeting", "weekly_digest"])


@dataclass
class EventRecord:
    event_id: str
    schema_version: int
    event_time: datetime
    ingest_time: datetime
    service: str
    trace_id: str
    span_id: str

    user_id: str
    anonymous_id: str
    user_logged_in: bool
    session_id: str

    action: str
    page: str
    product_id: str
    device: str
    os: str
    os_version: str
    app_version: str
    user_agent: str
    locale: str
    timezone: str
    region: str
    network_type: str

    latency_ms: int
    status_code: int
    success: bool
    value: float
    currency: str

    referrer: str
    utm_source: str
    utm_medium: str
    utm_campaign: str

    def to_dict(self) -> dict:
        d = asdict(self)
        d["event_time"] = format_timestamp(self.event_time)
        d["ingest_time"] = format_timestamp(self.ingest_time)
        return d


def format_timestamp(ts: datetime) -> str:
    """RFC 3339, UTC, millisecond precision: 2025-01-31T12:00:00.123Z"""
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------

def truncated_normal(rng: random.Random, mean, stddev, lo, hi) -> float:
    """Normal draw restricted to [lo, hi] by rejection, clamped as a last resort."""
    for _ in range(_TRUNCNORM_ATTEMPTS):
        v = rng.gauss(mean, stddev)
        if lo <= v <= hi:
            return v
    return min(max(v, lo), hi)


def round_to_increment(value: float, increment: int = 100) -> float:
    return float(int(value / increment + 0.5) * increment)


def hex_token(rng: random.Random, n_bytes: int) -> str:
    return f"{rng.getrandbits(n_bytes * 8):0{n_bytes * 2}x}"


def uuid4(rng: random.Random) -> str:
    return str(uuid.UUID(int=rng.getrandbits(128), version=4))


def random_status(rng: random.Random) -> tuple[int, bool]:
    cls = _STATUS_CLASSES.pick(rng)
    if cls == "ok":
        return 200, True
    if cls == "client":
        return _CLIENT_ERRORS.pick(rng), False
    return _SERVER_ERRORS.pick(rng), False


def page_for(rng: random.Random, action: str) -> str:
    return _PAGES_BY_ACTION.get(action, _SITE_PAGES).pick(rng)


def product_for(rng: random.Random, page: str) -> str:
    if page.startswith("/product/"):
        return page.removeprefix("/product/")
    return _LOOSE_PRODUCT_IDS.pick(rng)


def device_profile(rng: random.Random, device: str) -> tuple[str, str, str, str]:
    """(os, os_version, app_version, user_agent) for a device class."""
    os_version = _OS_VERSIONS[device].pick(rng)
    app_version = "web" if device == "web" else _APP_VERSIONS.pick(rng)
    user_agent = _USER_AGENTS[device].format(v=os_version)
    return _OS_NAMES[device], os_version, app_version, user_agent


def utm_tags(rng: random.Random) -> tuple[str, str, str]:
    if rng.random() < _UTM_TAGGED_RATE:
        return UTM_SOURCES.pick(rng), UTM_MEDIUMS.pick(rng), UTM_CAMPAIGNS.pick(rng)
    return "", "", ""


# ---------------------------------------------------------------------------
# Synthesizer
# ---------------------------------------------------------------------------

class EventSynthesizer:

    def synthesize(self, rng: random.Random, user: SimulatedUser,
                   now: datetime) -> EventRecord:
        event_time = now + timedelta(milliseconds=rng.randint(*_EVENT_OFFSET_MS))
        ingest_time = event_time + timedelta(milliseconds=rng.randint(*_INGEST_LAG_MS))

        action = ACTIONS.pick(rng)
        page = page_for(rng, action)
        device = DEVICES.pick(rng)
        os_name, os_version, app_version, user_agent = device_profile(rng, device)
        status, success = random_status(rng)

        value = 0.0
        if action == "purchase":
            value = round_to_increment(truncated_normal(rng, 35000, 20000, 1000, 500000))

        utm_source, utm_medium, utm_campaign = utm_tags(rng)

        return EventRecord(
            event_id=uuid4(rng),
            schema_version=SCHEMA_VERSION,
            event_time=event_time,
            ingest_time=ingest_time,
            service=SERVICES.pick(rng),
            trace_id=hex_token(rng, 16),
            span_id=hex_token(rng, 8),

            user_id=user.user_id,
            anonymous_id="anon_" + hex_token(rng, 6),
            user_logged_in=rng.random() < _LOGGED_IN_RATE,
            session_id="s_" + "".join(str(rng.randrange(10)) for _ in range(4)),

            action=action,
            page=page,
            product_id=product_for(rng, page),
            device=device,
            os=os_name,
            os_version=os_version,
            app_version=app_version,
            user_agent=user_agent,
            locale=LOCALE,
            timezone=TIMEZONE,
            region=REGIONS.pick(rng),
            network_type=NETWORKS.pick(rng),

            latency_ms=int(truncated_normal(rng, 120, 60, 5, 2000)),
            status_code=status,
            success=success,
            value=value,
            currency=CURRENCY,

            referrer=REFERRERS.pick(rng),
            utm_source=utm_source,
            utm_medium=utm_medium,
            utm_campaign=utm_campaign,
        )
