import os
from typing import Dict, List, Optional

from loguru import logger

from .chain import Web3ChainClient
from .chunker import ChunkPlanner
from .codec import BlobCodec
from .commitment import CkzgCommitmentEngine
from .config import ClientConfig
from .constants import StorageMode
from .content import BytesContent, ContentSource, FileContent
from .downloader import DownloadReconstructor
from .errors import BlobDirError, InvalidInput
from .gas import GasPriceEstimator
from .remote import RemoteDiffChecker
from .types import CostEstimate, DownloadProgress, Receipt, UploadProgress, UploadResult
from .uploader import UploadOrchestrator


class BlobDirectoryClient:
    def __init__(self, config: ClientConfig, chain=None, read_chain=None, engine=None):
        if not chain and not config.address:
            raise InvalidInput("FlatDirectory contract address is required")
        self.config = config
        self.chain = chain or Web3ChainClient(config.rpc, config.address, config.private_key)
        if read_chain is None and config.read_rpc:
            read_chain = Web3ChainClient(config.read_rpc, config.address)
        self.read_chain = read_chain or self.chain
        if engine is None and config.trusted_setup:
            engine = CkzgCommitmentEngine(config.trusted_setup)
        self.engine = engine

        self.codec = BlobCodec()
        self.uploader = UploadOrchestrator(
            self.chain,
            self.engine,
            planner=ChunkPlanner(self.codec, max_chunks=config.max_chunks),
            gas=GasPriceEstimator(self.chain, config.fee_bump_percent),
            receipt_poll_interval=config.receipt_poll_interval,
        )
        self.downloader = DownloadReconstructor(self.read_chain, self.codec)
        self.supports_blob = None

    async def start(self):
        """Check the contract and, when we can sign, warm up the uploader"""
        self.supports_blob = bool(await self.chain.call("isSupportBlob"))
        if not self.supports_blob:
            logger.warning("Contract does not support blob upload; only calldata uploads are possible")
        if self.chain.address:
            await self.uploader.start()
        logger.info(f"Client connected to {self.config.rpc}")

    def _require_uploads(self, mode: StorageMode):
        if self.chain.address is None:
            raise BlobDirError("Private key is required for this operation.")
        if mode != StorageMode.BLOB:
            return
        if self.engine is None:
            raise BlobDirError("A KZG trusted setup is required for blob upload.")
        if self.supports_blob is False:
            raise BlobDirError("The contract does not support blob upload!")

    async def upload(self, key: str, content: ContentSource, mode: StorageMode = StorageMode.BLOB,
                     on_progress: Optional[UploadProgress] = None) -> UploadResult:
        self._require_uploads(mode)
        return await self.uploader.upload_content(key, content, mode, on_progress)

    async def upload_bytes(self, key: str, data: bytes, mode: StorageMode = StorageMode.BLOB,
                           on_progress: Optional[UploadProgress] = None) -> UploadResult:
        return await self.upload(key, BytesContent(data), mode, on_progress)

    async def upload_file(self, file_path: str, key: Optional[str] = None,
                          mode: StorageMode = StorageMode.BLOB,
                          on_progress: Optional[UploadProgress] = None) -> UploadResult:
        """Upload a local file, keyed by its base name unless a key is given"""
        return await self.upload(key or os.path.basename(file_path), FileContent(file_path), mode, on_progress)

    async def upload_files(self, file_paths: List[str], concurrency: Optional[int] = None,
                           mode: StorageMode = StorageMode.BLOB,
                           on_progress: Optional[UploadProgress] = None) -> List[UploadResult]:
        self._require_uploads(mode)
        items = [(os.path.basename(path), FileContent(path)) for path in file_paths]
        return await self.uploader.upload_contents(items, concurrency or self.config.concurrency,
                                                   mode, on_progress)

    async def estimate_cost(self, key: str, content: ContentSource,
                            mode: StorageMode = StorageMode.BLOB) -> CostEstimate:
        self._require_uploads(mode)
        return await self.uploader.estimate_cost(key, content, mode)

    async def remove(self, key: str) -> Receipt:
        if self.chain.address is None:
            raise BlobDirError("Private key is required for this operation.")
        return await self.uploader.remove(key)

    async def download(self, key: str, output_path: Optional[str] = None,
                       on_progress: Optional[DownloadProgress] = None) -> bytes:
        """Download a key, optionally writing it to output_path"""
        data = await self.downloader.download_content(key, on_progress)
        if output_path:
            with open(output_path, 'wb') as f:
                f.write(data)
        return data

    async def fetch_hashes(self, keys: List[str]) -> Dict[str, List[bytes]]:
        return await RemoteDiffChecker(self.read_chain).fetch_hashes(keys)
