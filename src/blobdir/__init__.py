# blobdir - chunked content storage over blob transactions
from .chunker import CalldataPlanner, ChunkPlanner
from .client import BlobDirectoryClient
from .codec import BlobCodec
from .config import ClientConfig
from .content import BytesContent, FileContent
from .downloader import DownloadReconstructor
from .errors import (
    BlobDirError,
    DownloadFailure,
    EstimationError,
    InvalidInput,
    RemoteStateError,
    SubmissionError
)
from .gas import GasPriceEstimator
from .nonce import NonceCoordinator
from .types import CostEstimate, UploadResult, UploadState
from .uploader import UploadOrchestrator
from .constants import (
    BLOB_SIZE,
    CALLDATA_CHUNK_SIZE,
    CHUNK_CAPACITY,
    MAX_BLOBS_PER_TX,
    DEFAULT_CONCURRENCY,
    StorageMode
)

__version__ = "0.1.0"
__all__ = [
    "BlobCodec",
    "BlobDirectoryClient",
    "BlobDirError",
    "BytesContent",
    "CalldataPlanner",
    "ChunkPlanner",
    "ClientConfig",
    "CostEstimate",
    "DownloadFailure",
    "DownloadReconstructor",
    "EstimationError",
    "FileContent",
    "GasPriceEstimator",
    "InvalidInput",
    "NonceCoordinator",
    "RemoteStateError",
    "SubmissionError",
    "UploadOrchestrator",
    "UploadResult",
    "UploadState",
    "BLOB_SIZE",
    "CALLDATA_CHUNK_SIZE",
    "CHUNK_CAPACITY",
    "MAX_BLOBS_PER_TX",
    "DEFAULT_CONCURRENCY",
    "StorageMode"
]
