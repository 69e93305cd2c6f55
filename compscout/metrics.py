"""Prometheus metrics for compscout."""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("compscout", "compscout application info")
app_info.info({"version": "0.1.0", "name": "compscout"})

# Crawl metrics
search_api_calls_total = Counter(
    "search_api_calls_total",
    "Total number of marketplace search requests sent",
    ["status"],
)

reference_images_stored_total = Counter(
    "reference_images_stored_total",
    "Total number of reference images stored",
    ["brand"],
)

crawl_duplicates_total = Counter(
    "crawl_duplicates_total",
    "Total number of duplicates skipped during ingestion",
    ["kind"],
)

crawl_failures_total = Counter(
    "crawl_failures_total",
    "Total number of per-item ingestion failures",
    ["reason"],
)

family_seed_duration_seconds = Histogram(
    "family_seed_duration_seconds",
    "Time spent seeding one family",
    buckets=[1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 900.0],
)

# Embedding metrics
embedding_requests_total = Counter(
    "embedding_requests_total",
    "Total number of embedding requests",
    ["status"],
)

# Pricing metrics
comp_cleaning_total = Counter(
    "comp_cleaning_total",
    "Total number of comp cleaning runs",
    ["outcome"],
)

price_guidance_total = Counter(
    "price_guidance_total",
    "Total number of price guidance calculations",
    ["outcome"],
)


def record_search_call(status: str):
    """Record one marketplace search request."""
    search_api_calls_total.labels(status=status).inc()


def record_image_stored(brand: str):
    """Record a stored reference image."""
    reference_images_stored_total.labels(brand=brand).inc()


def record_duplicate(kind: str):
    """Record a skipped duplicate (``listing`` or ``image``)."""
    crawl_duplicates_total.labels(kind=kind).inc()


def record_failure(reason: str):
    """Record a per-item ingestion failure."""
    crawl_failures_total.labels(reason=reason).inc()


def record_embedding(status: str):
    embedding_requests_total.labels(status=status).inc()


def record_comp_cleaning(outcome: str):
    comp_cleaning_total.labels(outcome=outcome).inc()


def record_price_guidance(outcome: str):
    price_guidance_total.labels(outcome=outcome).inc()
