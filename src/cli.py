#!/usr/bin/env python3
import asyncio

import click

from blobdir import BlobDirectoryClient, BlobDirError, ClientConfig, FileContent, StorageMode

MODES = {"blob": StorageMode.BLOB, "calldata": StorageMode.CALLDATA}


def connection_options(f):
    f = click.option('--rpc', envvar='RPC_URL', default='http://127.0.0.1:8545', help='Execution RPC URL')(f)
    f = click.option('--read-rpc', envvar='BLOBDIR_READ_RPC', help='RPC URL serving blob data')(f)
    f = click.option('--address', envvar='BLOBDIR_ADDRESS', required=True, help='Chunk-store contract address')(f)
    return f


def signer_options(f):
    f = click.option('--private-key', envvar='BLOBDIR_PRIVATE_KEY', required=True, help='Private key (hex)')(f)
    f = click.option('--trusted-setup', envvar='KZG_TRUSTED_SETUP', help='KZG trusted setup file')(f)
    f = click.option('--fee-bump', default=20, show_default=True, help='Percent added to quoted fees')(f)
    return f


mode_option = click.option('--mode', type=click.Choice(list(MODES)), default='blob', show_default=True,
                           help='Write chunks as blobs or as calldata')


def make_client(rpc, read_rpc, address, private_key=None, trusted_setup=None, **extra):
    config = ClientConfig(rpc=rpc, read_rpc=read_rpc, address=address,
                          private_key=private_key, trusted_setup=trusted_setup, **extra)
    return BlobDirectoryClient(config)


@click.group()
def cli():
    """blobdir CLI - store files as blob-transaction chunks"""
    pass


@cli.command()
@click.argument('file_paths', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--concurrency', default=15, show_default=True, help='Files uploaded at once')
@connection_options
@signer_options
@mode_option
def upload(file_paths, concurrency, rpc, read_rpc, address, private_key, trusted_setup, fee_bump, mode):
    """Upload files, keyed by file name"""
    async def _upload():
        client = make_client(rpc, read_rpc, address, private_key, trusted_setup,
                             fee_bump_percent=fee_bump)
        await client.start()
        results = await client.upload_files(list(file_paths), concurrency, MODES[mode])
        failed = 0
        for result in results:
            if result.completed:
                click.echo(f"✓ {result.key}: {result.chunks_written}/{result.total_chunks} chunks written, "
                           f"{result.bytes_written} bytes, storage cost {result.cost} wei")
            else:
                failed += 1
                click.echo(f"✗ {result.key}: stopped after chunk {result.success_index} "
                           f"of {result.total_chunks}: {result.error}", err=True)
        return failed

    if asyncio.run(_upload()):
        raise SystemExit(1)


@cli.command()
@click.argument('key')
@click.option('--output', '-o', help='Output file path')
@connection_options
def download(key, output, rpc, read_rpc, address):
    """Download a key"""
    async def _download():
        client = make_client(rpc, read_rpc, address)
        try:
            click.echo(f"Downloading {key}...")
            data = await client.download(key, output)
            if output:
                click.echo(f"✓ Downloaded to {output} ({len(data)} bytes)")
            else:
                click.echo(f"✓ Downloaded {len(data)} bytes")
        except BlobDirError as e:
            click.echo(f"✗ Download failed: {e}", err=True)
            raise SystemExit(1)

    asyncio.run(_download())


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--key', help='Key to estimate under (default: file name)')
@connection_options
@signer_options
@mode_option
def estimate(file_path, key, rpc, read_rpc, address, private_key, trusted_setup, fee_bump, mode):
    """Estimate the cost of uploading a file"""
    async def _estimate():
        client = make_client(rpc, read_rpc, address, private_key, trusted_setup,
                             fee_bump_percent=fee_bump)
        await client.start()
        cost = await client.estimate_cost(key or click.format_filename(file_path, shorten=True),
                                          FileContent(file_path), MODES[mode])
        click.echo(f"Storage cost: {cost.storage_cost} wei")
        click.echo(f"Gas cost:     {cost.gas_cost} wei")

    asyncio.run(_estimate())


@cli.command()
@click.argument('key')
@connection_options
@signer_options
def remove(key, rpc, read_rpc, address, private_key, trusted_setup, fee_bump):
    """Remove every chunk stored under a key"""
    async def _remove():
        client = make_client(rpc, read_rpc, address, private_key, trusted_setup,
                             fee_bump_percent=fee_bump)
        try:
            click.echo(f"Removing {key}...")
            receipt = await client.remove(key)
            click.echo(f"✓ Removed in {receipt.tx_hash}")
        except BlobDirError as e:
            click.echo(f"✗ Remove failed: {e}", err=True)
            raise SystemExit(1)

    asyncio.run(_remove())


if __name__ == '__main__':
    cli()
