#!/usr/bin/env python3
"""
Basic usage example for blobdir

Reads RPC_URL, BLOBDIR_ADDRESS, BLOBDIR_PRIVATE_KEY and KZG_TRUSTED_SETUP
from the environment.
"""
import asyncio
import sys

from loguru import logger

from blobdir import BlobDirectoryClient, BytesContent, ClientConfig

logger.remove()
logger.add(sys.stderr, level="INFO")


async def main():
    config = ClientConfig.from_env()
    client = BlobDirectoryClient(config)

    # Connect and check the contract
    await client.start()
    if not client.supports_blob:
        print("Contract does not accept blob uploads.")
        return

    # Estimate before paying
    cost = await client.estimate_cost("hello.txt", BytesContent(b"Hello, blobs!"))
    print(f"Estimated cost: {cost.storage_cost} wei storage, {cost.gas_cost} wei gas")

    # Upload
    result = await client.upload_bytes("hello.txt", b"Hello, blobs!")
    if not result.completed:
        print(f"Upload stopped after chunk {result.success_index}: {result.error}")
        return
    print(f"Uploaded {result.key}: {result.chunks_written} chunks written")

    # Uploading the same bytes again writes nothing
    again = await client.upload_bytes("hello.txt", b"Hello, blobs!")
    print(f"Second upload wrote {again.chunks_written} chunks")

    # Download
    data = await client.download("hello.txt", "downloaded.txt")
    print(f"Downloaded {len(data)} bytes: {data!r}")


if __name__ == "__main__":
    asyncio.run(main())
