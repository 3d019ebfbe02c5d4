"""Application constants."""

DEFAULT_CHUNK_SIZE = 100000
DEFAULT_BATCH_SIZE = 10000

# jednostkaAdmnistracyjna is repeated country, voivodeship, county, municipality.
LOCALITY_ADMIN_LEVEL = 3

SOURCE_CRS = "EPSG:2180"
TARGET_CRS = "EPSG:4326"

CHUNK_SUFFIX = ".chunk"
NORMALISED_SUFFIX = ".no_namespaced_xml"
TMP_DIR_PREFIX = "tmp-"

EXIT_SUCCESS = 0
EXIT_USAGE = 2
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "source_file",
    "chunk",
    "batch",
    "event",
    "status",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)
