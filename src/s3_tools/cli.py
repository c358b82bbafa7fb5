"""Command-line interface for s3-tools.

This module provides the ``s3-tools`` CLI for bulk operations against
S3-compatible object storage.

Commands:
    - list: List buckets, or keys and common prefixes under a prefix
    - get: Fetch an object (or a byte range of it) to a file or stdout
    - put: Upload a file or stdin as a multipart upload
    - delete: Delete a single object
    - head: Show object metadata, optionally the ACL
    - clean: Delete every key under a prefix, with regex filter and dry-run
    - size: Count keys and bytes under a prefix
    - scan: Stream the content of every key under a prefix to stdout
    - sample: Count typed key paths in JSON-lines objects
    - list-multipart: List incomplete multipart uploads
    - parse-uri / make-uri: Translate between URIs and bucket/key pairs

Targets are given either as a URI (``s3://bucket/prefix``) or as a bucket
followed by a key or prefix. Object bytes and listings go to stdout;
progress, summaries and logs go to stderr.
"""

import json
import os
import sys
import tempfile
from contextlib import contextmanager
from typing import Annotated, BinaryIO, Iterator, Optional

import typer

from . import __version__
from .cli_params import (
    aws_access_key_option,
    aws_endpoint_url_option,
    aws_profile_option,
    aws_region_option,
    aws_secret_key_option,
    aws_session_token_option,
    bucket_or_uri_argument,
    key_argument,
    key_regex_option,
    prefix_argument,
    quiet_option,
    records_option,
    report_frequency_option,
    verbose_option,
)
from .core import S3ToolsError, settings
from .core.context import RunContext
from .core.exceptions import ValidationError
from .core.formatting import format_bytes
from .core.observability import set_log_level
from .core.records import RecordWriter
from .objectstorage.locator import format_uri, parse_uri, resolve_resource
from .objectstorage.models import CommonPrefix
from .schemas import S3StorageConfig
from .transfer import default_filename, validate_range
from .unified import (
    clean_prefix,
    delete_object,
    download_object,
    head_object,
    list_buckets,
    list_multipart_uploads,
    list_objects,
    measure_prefix,
    open_context,
    sample_prefix,
    scan_prefix,
    upload_object,
)

app = typer.Typer(
    name="s3-tools",
    help="Bulk operations against S3-compatible object storage.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Display version information."""
    if value:
        typer.echo(f"s3-tools {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, help="Show version."),
    ] = None,
) -> None:
    """
    S3-Tools: list, fetch, upload, inspect and purge S3 objects in bulk.
    """
    pass


def _create_storage_config(
    access_key_id: Optional[str] = None,
    secret_access_key: Optional[str] = None,
    session_token: Optional[str] = None,
    region_name: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    aws_profile: Optional[str] = None,
) -> S3StorageConfig:
    return S3StorageConfig(
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        session_token=session_token,
        region_name=region_name,
        endpoint_url=endpoint_url,
        aws_profile=aws_profile,
    )


def _progress_line(line: str) -> None:
    typer.echo(line, err=True)


def _open_context(
    config: S3StorageConfig,
    quiet: bool = False,
    verbose: bool = False,
    report_frequency: Optional[float] = None,
    records: Optional[RecordWriter] = None,
    max_pool_connections: int = 10,
) -> RunContext:
    if verbose:
        set_log_level("INFO")
    return open_context(
        config,
        progress=None if quiet else _progress_line,
        records=records,
        report_interval=(
            settings.report_frequency if report_frequency is None else report_frequency
        ),
        max_pool_connections=max_pool_connections,
    )


@contextmanager
def _record_writer(path: Optional[str]) -> Iterator[Optional[RecordWriter]]:
    """Open an NDJSON record writer on a file, on stdout for '-', or not at all."""
    if not path:
        yield None
    elif path == "-":
        writer = RecordWriter(sys.stdout)
        yield writer
        writer.close()
    else:
        with open(path, "w", encoding="utf-8") as stream:
            writer = RecordWriter(stream)
            yield writer
            writer.close()


@contextmanager
def _replace_on_success(target: str) -> Iterator[BinaryIO]:
    """Write to a temporary file beside ``target`` and move it into place on success."""
    directory = os.path.dirname(os.path.abspath(target))
    handle = tempfile.NamedTemporaryFile(
        "wb", dir=directory, prefix=f".{os.path.basename(target)}.", suffix=".part", delete=False
    )
    try:
        with handle:
            yield handle
        os.replace(handle.name, target)
    except BaseException:
        if os.path.exists(handle.name):
            os.unlink(handle.name)
        raise


def _release_stdout() -> None:
    """Point stdout at /dev/null once its reader has gone away."""
    try:
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
    except (OSError, ValueError):
        pass


@app.command("list")
def list_cmd(
    bucket_or_uri: Annotated[
        Optional[str],
        typer.Argument(help="Bucket or URI to list (omit to list buckets)"),
    ] = None,
    prefix: Annotated[Optional[str], prefix_argument()] = None,
    delimiter: Annotated[
        Optional[str],
        typer.Option("--delimiter", "-d", help="Group keys into common prefixes"),
    ] = None,
    start_after: Annotated[
        Optional[str],
        typer.Option("--start-after", "-s", help="Only list keys after this key"),
    ] = None,
    limit: Annotated[
        int, typer.Option("--limit", "-l", min=0, help="Maximum entries to list")
    ] = 100,
    unlimited: Annotated[
        bool, typer.Option("--unlimited", "-u", help="List every key (ignores --limit)")
    ] = False,
    output_format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: key, bucket-key or url"),
    ] = "key",
    access_key_id: Annotated[Optional[str], aws_access_key_option()] = None,
    secret_access_key: Annotated[Optional[str], aws_secret_key_option()] = None,
    session_token: Annotated[Optional[str], aws_session_token_option()] = None,
    region_name: Annotated[Optional[str], aws_region_option()] = None,
    endpoint_url: Annotated[Optional[str], aws_endpoint_url_option()] = None,
    aws_profile: Annotated[Optional[str], aws_profile_option()] = None,
    verbose: Annotated[bool, verbose_option()] = False,
) -> None:
    """
    List buckets, or the keys and common prefixes under a bucket/prefix.

    Examples:
        s3-tools list
        s3-tools list s3://bucket/logs/ --delimiter / --limit 20
        s3-tools list bucket logs/2024- --unlimited --format url
    """
    if output_format not in ("key", "bucket-key", "url"):
        typer.echo(f"Error: Invalid format: {output_format}", err=True)
        raise typer.Exit(1)

    try:
        config = _create_storage_config(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            region_name=region_name,
            endpoint_url=endpoint_url,
            aws_profile=aws_profile,
        )
        context = _open_context(config, quiet=True, verbose=verbose)

        if not bucket_or_uri:
            buckets = list_buckets(context)
            for bucket in buckets:
                created = bucket.created.strftime("%Y-%m-%d %H:%M:%S") if bucket.created else "-"
                typer.echo(f"  [{created} | {bucket.region}] {bucket.name}")
            typer.echo(f"Listed {len(buckets)} buckets.", err=True)
            return

        walker = list_objects(
            context,
            bucket_or_uri,
            prefix=prefix,
            delimiter=delimiter,
            start_after=start_after,
            limit=None if unlimited else limit,
        )

        prefix_count = 0
        key_count = 0
        for entry in walker:
            if isinstance(entry, CommonPrefix):
                prefix_count += 1
                name = entry.prefix
            else:
                key_count += 1
                name = entry.key

            if output_format == "bucket-key":
                text = f"{walker.bucket} {name}"
            elif output_format == "url":
                text = format_uri(walker.bucket, name)
            else:
                text = name

            if isinstance(entry, CommonPrefix):
                typer.echo(f"  {text}")
            else:
                modified = (
                    entry.last_modified.strftime("%Y-%m-%d %H:%M:%S")
                    if entry.last_modified
                    else "-"
                )
                typer.echo(f"  [{modified} | {entry.size_bytes:>12}] {text}")

        partial = walker.more_available
        if prefix_count > 0:
            typer.echo(f"Listed {prefix_count} common prefixes.", err=True)
        typer.echo(
            f"Listed {'' if partial else 'all '}{key_count} matching keys"
            f"{' (partial listing)' if partial else ''}.",
            err=True,
        )

    except S3ToolsError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("get")
def get_cmd(
    bucket_or_uri: Annotated[str, bucket_or_uri_argument()],
    key: Annotated[Optional[str], key_argument()] = None,
    file: Annotated[
        Optional[str],
        typer.Option(
            "--file",
            "-f",
            help="File to write to (default: basename of the key)",
        ),
    ] = None,
    stdout: Annotated[
        bool, typer.Option("--stdout", "-S", help="Write to stdout instead of a file")
    ] = False,
    byte_range: Annotated[
        Optional[str],
        typer.Option("--range", help='Inclusive byte range to fetch, e.g. "0-499"'),
    ] = None,
    gunzip: Annotated[
        bool,
        typer.Option(
            "--gunzip/--no-gunzip",
            help="Decompress gzip content (default: copy bytes verbatim)",
        ),
    ] = False,
    access_key_id: Annotated[Optional[str], aws_access_key_option()] = None,
    secret_access_key: Annotated[Optional[str], aws_secret_key_option()] = None,
    session_token: Annotated[Optional[str], aws_session_token_option()] = None,
    region_name: Annotated[Optional[str], aws_region_option()] = None,
    endpoint_url: Annotated[Optional[str], aws_endpoint_url_option()] = None,
    aws_profile: Annotated[Optional[str], aws_profile_option()] = None,
    quiet: Annotated[bool, quiet_option()] = False,
    verbose: Annotated[bool, verbose_option()] = False,
    report_frequency: Annotated[Optional[float], report_frequency_option()] = None,
) -> None:
    """
    Fetch an object to a file or stdout.

    Examples:
        s3-tools get s3://bucket/data/file.csv
        s3-tools get bucket data/file.csv.gz --stdout --gunzip | head
        s3-tools get s3://bucket/big.bin --range 0-1048575 -f head.bin
    """
    try:
        config = _create_storage_config(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            region_name=region_name,
            endpoint_url=endpoint_url,
            aws_profile=aws_profile,
        )
        context = _open_context(
            config, quiet=quiet, verbose=verbose, report_frequency=report_frequency
        )

        if stdout:
            session = download_object(
                context,
                bucket_or_uri,
                sys.stdout.buffer,
                key=key,
                byte_range=byte_range,
                decompress=gunzip,
                sink_is_stdout=True,
            )
            if session.terminated_early:
                _release_stdout()
            return

        # Fail on bad input before creating the output file
        location = resolve_resource(bucket_or_uri, key)
        validate_range(byte_range)
        if not location.key:
            raise ValidationError(f"A key is required: {location.uri}")

        target = file or default_filename(location.key)
        with _replace_on_success(target) as sink:
            session = download_object(
                context,
                location.bucket,
                sink,
                key=location.key,
                byte_range=byte_range,
                decompress=gunzip,
            )

        typer.echo(
            f"Wrote {format_bytes(session.bytes_transferred)} "
            f"({session.bytes_transferred:,} bytes) to {target}",
            err=True,
        )

    except (S3ToolsError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("put")
def put_cmd(
    bucket_or_uri: Annotated[str, bucket_or_uri_argument()],
    key: Annotated[
        Optional[str], key_argument("Key identifying the destination of the object")
    ] = None,
    file: Annotated[
        Optional[str], typer.Option("--file", "-f", help="Upload the named file")
    ] = None,
    stdin: Annotated[
        bool, typer.Option("--stdin", "-S", help="Stream content from stdin")
    ] = False,
    header: Annotated[
        Optional[list[str]],
        typer.Option(
            "--header", "-h", help='Header for the object, e.g. "ContentType:text/plain"'
        ),
    ] = None,
    metadata: Annotated[
        Optional[list[str]],
        typer.Option("--metadata", "-m", help='Metadata for the object, e.g. "git-hash:feedbeef"'),
    ] = None,
    publish: Annotated[
        bool, typer.Option("--publish", "-P", help="Make the object public (read-only)")
    ] = False,
    part_size: Annotated[
        int,
        typer.Option(
            "--part-size",
            "-p",
            min=5,
            help="Maximum size of each part in MiB (each part is buffered in memory)",
        ),
    ] = settings.part_size_mib,
    queue_size: Annotated[
        int,
        typer.Option(
            "--queue-size",
            "-q",
            min=1,
            help="Parts buffered and uploaded in parallel (for fast sources)",
        ),
    ] = settings.queue_size,
    access_key_id: Annotated[Optional[str], aws_access_key_option()] = None,
    secret_access_key: Annotated[Optional[str], aws_secret_key_option()] = None,
    session_token: Annotated[Optional[str], aws_session_token_option()] = None,
    region_name: Annotated[Optional[str], aws_region_option()] = None,
    endpoint_url: Annotated[Optional[str], aws_endpoint_url_option()] = None,
    aws_profile: Annotated[Optional[str], aws_profile_option()] = None,
    quiet: Annotated[bool, quiet_option()] = False,
    verbose: Annotated[bool, verbose_option()] = False,
    report_frequency: Annotated[Optional[float], report_frequency_option()] = None,
) -> None:
    """
    Upload a file or stdin to S3.

    Examples:
        s3-tools put s3://bucket/data/file.csv -f file.csv -h ContentType:text/csv
        tar cz dir | s3-tools put bucket backups/dir.tgz --stdin -q 4
    """
    if stdin == bool(file):
        typer.echo("Error: Specify exactly one of --file or --stdin.", err=True)
        raise typer.Exit(1)

    try:
        config = _create_storage_config(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            region_name=region_name,
            endpoint_url=endpoint_url,
            aws_profile=aws_profile,
        )
        context = _open_context(
            config,
            quiet=quiet,
            verbose=verbose,
            report_frequency=report_frequency,
            max_pool_connections=max(10, queue_size),
        )

        if stdin:
            result = upload_object(
                context,
                bucket_or_uri,
                sys.stdin.buffer,
                key=key,
                headers=header,
                metadata=metadata,
                publish=publish,
                part_size_mib=part_size,
                queue_size=queue_size,
            )
        else:
            assert file is not None
            total_bytes = os.path.getsize(file)
            context.emit(f"{file} length is {total_bytes:,} bytes")
            with open(file, "rb") as source:
                result = upload_object(
                    context,
                    bucket_or_uri,
                    source,
                    key=key,
                    total_bytes=total_bytes,
                    headers=header,
                    metadata=metadata,
                    publish=publish,
                    part_size_mib=part_size,
                    queue_size=queue_size,
                )

        typer.echo(
            f"S3 put complete: {result.uri} [ETag:{result.etag}] "
            f"({result.bytes:,} bytes in {result.parts} parts)",
            err=True,
        )
        if result.public_url:
            typer.echo(f"Publicly available at {result.public_url}", err=True)

    except (S3ToolsError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("delete")
def delete_cmd(
    bucket_or_uri: Annotated[str, bucket_or_uri_argument()],
    key: Annotated[Optional[str], key_argument()] = None,
    access_key_id: Annotated[Optional[str], aws_access_key_option()] = None,
    secret_access_key: Annotated[Optional[str], aws_secret_key_option()] = None,
    session_token: Annotated[Optional[str], aws_session_token_option()] = None,
    region_name: Annotated[Optional[str], aws_region_option()] = None,
    endpoint_url: Annotated[Optional[str], aws_endpoint_url_option()] = None,
    aws_profile: Annotated[Optional[str], aws_profile_option()] = None,
) -> None:
    """
    Delete a single object.

    Examples:
        s3-tools delete s3://bucket/data/file.csv
    """
    try:
        config = _create_storage_config(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            region_name=region_name,
            endpoint_url=endpoint_url,
            aws_profile=aws_profile,
        )
        context = _open_context(config, quiet=True)
        location = delete_object(context, bucket_or_uri, key=key)
        typer.echo(f"Deleted {location.uri}", err=True)

    except S3ToolsError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("head")
def head_cmd(
    bucket_or_uri: Annotated[str, bucket_or_uri_argument()],
    key: Annotated[Optional[str], key_argument()] = None,
    acl: Annotated[
        bool, typer.Option("--acl", "-a", help="Also fetch the ACL of the object")
    ] = False,
    access_key_id: Annotated[Optional[str], aws_access_key_option()] = None,
    secret_access_key: Annotated[Optional[str], aws_secret_key_option()] = None,
    session_token: Annotated[Optional[str], aws_session_token_option()] = None,
    region_name: Annotated[Optional[str], aws_region_option()] = None,
    endpoint_url: Annotated[Optional[str], aws_endpoint_url_option()] = None,
    aws_profile: Annotated[Optional[str], aws_profile_option()] = None,
) -> None:
    """
    Show the metadata of an object as JSON.

    Examples:
        s3-tools head s3://bucket/data/file.csv --acl
    """
    try:
        config = _create_storage_config(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            region_name=region_name,
            endpoint_url=endpoint_url,
            aws_profile=aws_profile,
        )
        context = _open_context(config, quiet=True)
        metadata = head_object(context, bucket_or_uri, key=key, include_acl=acl)
        typer.echo(json.dumps(metadata, indent=2, default=str))

    except S3ToolsError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("clean")
def clean_cmd(
    bucket_or_uri: Annotated[
        str, bucket_or_uri_argument("The bucket or URI which should be cleaned")
    ],
    prefix: Annotated[Optional[str], prefix_argument()] = None,
    key_regex: Annotated[Optional[str], key_regex_option()] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-D", help="Do not delete anything, just simulate it"),
    ] = False,
    force: Annotated[
        bool, typer.Option("--force", help="Do not prompt before proceeding")
    ] = False,
    batch_size: Annotated[
        int,
        typer.Option("--batch-size", min=1, max=1000, help="Keys per delete request"),
    ] = 1000,
    records: Annotated[Optional[str], records_option()] = None,
    access_key_id: Annotated[Optional[str], aws_access_key_option()] = None,
    secret_access_key: Annotated[Optional[str], aws_secret_key_option()] = None,
    session_token: Annotated[Optional[str], aws_session_token_option()] = None,
    region_name: Annotated[Optional[str], aws_region_option()] = None,
    endpoint_url: Annotated[Optional[str], aws_endpoint_url_option()] = None,
    aws_profile: Annotated[Optional[str], aws_profile_option()] = None,
    quiet: Annotated[bool, quiet_option()] = False,
    verbose: Annotated[bool, verbose_option()] = False,
    report_frequency: Annotated[Optional[float], report_frequency_option()] = None,
) -> None:
    """
    Delete every key under a bucket or prefix, optionally filtered by regex.

    Examples:
        s3-tools clean s3://bucket/tmp/ --dry-run
        s3-tools clean bucket logs/ -k '\\.gz$' --force --records deleted.ndjson
    """
    try:
        config = _create_storage_config(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            region_name=region_name,
            endpoint_url=endpoint_url,
            aws_profile=aws_profile,
        )

        with _record_writer(records) as writer:
            context = _open_context(
                config,
                quiet=quiet,
                verbose=verbose,
                report_frequency=report_frequency,
                records=writer,
            )
            summary = clean_prefix(
                context,
                bucket_or_uri,
                prefix=prefix,
                key_regex=key_regex,
                dry_run=dry_run,
                batch_size=batch_size,
                confirm=lambda message: typer.confirm(message, default=False),
                force=force,
            )

        if not summary.confirmed:
            typer.echo("Aborted, nothing was deleted.", err=True)
            return

        if quiet:
            typer.echo(summary.describe(), err=True)

        for failure in summary.failures:
            typer.echo(f"  Failed: {failure.key} ({failure.code}: {failure.message})", err=True)
        summary.raise_for_failures()

    except (S3ToolsError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("size")
def size_cmd(
    bucket_or_uri: Annotated[
        str, bucket_or_uri_argument("The bucket or URI whose keys should be counted")
    ],
    prefix: Annotated[Optional[str], prefix_argument()] = None,
    key_regex: Annotated[Optional[str], key_regex_option()] = None,
    records: Annotated[Optional[str], records_option()] = None,
    access_key_id: Annotated[Optional[str], aws_access_key_option()] = None,
    secret_access_key: Annotated[Optional[str], aws_secret_key_option()] = None,
    session_token: Annotated[Optional[str], aws_session_token_option()] = None,
    region_name: Annotated[Optional[str], aws_region_option()] = None,
    endpoint_url: Annotated[Optional[str], aws_endpoint_url_option()] = None,
    aws_profile: Annotated[Optional[str], aws_profile_option()] = None,
    quiet: Annotated[bool, quiet_option()] = False,
    verbose: Annotated[bool, verbose_option()] = False,
    report_frequency: Annotated[Optional[float], report_frequency_option()] = None,
) -> None:
    """
    Count the keys and bytes under a bucket or prefix.

    Examples:
        s3-tools size s3://bucket/logs/ -k '2024-0[1-3]'
    """
    try:
        config = _create_storage_config(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            region_name=region_name,
            endpoint_url=endpoint_url,
            aws_profile=aws_profile,
        )

        with _record_writer(records) as writer:
            context = _open_context(
                config,
                quiet=quiet,
                verbose=verbose,
                report_frequency=report_frequency,
                records=writer,
            )
            metrics = measure_prefix(context, bucket_or_uri, prefix=prefix, key_regex=key_regex)

        typer.echo(f"Location: {format_uri(metrics.bucket, metrics.prefix)}")
        typer.echo(f"Objects: {metrics.object_count:,} of {metrics.scanned:,} scanned")
        typer.echo(f"Total size: {metrics.total_bytes:,} bytes")
        typer.echo(f"Human readable: {format_bytes(metrics.total_bytes)}")

    except (S3ToolsError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("scan")
def scan_cmd(
    bucket_or_uri: Annotated[
        str, bucket_or_uri_argument("The bucket or URI whose content should be scanned")
    ],
    prefix: Annotated[Optional[str], prefix_argument()] = None,
    key_regex: Annotated[Optional[str], key_regex_option()] = None,
    gunzip: Annotated[
        bool,
        typer.Option("--gunzip/--no-gunzip", help="Decompress gzip content"),
    ] = False,
    access_key_id: Annotated[Optional[str], aws_access_key_option()] = None,
    secret_access_key: Annotated[Optional[str], aws_secret_key_option()] = None,
    session_token: Annotated[Optional[str], aws_session_token_option()] = None,
    region_name: Annotated[Optional[str], aws_region_option()] = None,
    endpoint_url: Annotated[Optional[str], aws_endpoint_url_option()] = None,
    aws_profile: Annotated[Optional[str], aws_profile_option()] = None,
    quiet: Annotated[bool, quiet_option()] = False,
    verbose: Annotated[bool, verbose_option()] = False,
    report_frequency: Annotated[Optional[float], report_frequency_option()] = None,
) -> None:
    """
    Write the content of every key under a bucket or prefix to stdout.

    Examples:
        s3-tools scan s3://bucket/logs/2024-01-01/ --gunzip | grep ERROR
    """
    try:
        config = _create_storage_config(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            region_name=region_name,
            endpoint_url=endpoint_url,
            aws_profile=aws_profile,
        )
        context = _open_context(
            config, quiet=quiet, verbose=verbose, report_frequency=report_frequency
        )
        summary = scan_prefix(
            context,
            bucket_or_uri,
            sys.stdout.buffer,
            prefix=prefix,
            key_regex=key_regex,
            decompress=gunzip,
            sink_is_stdout=True,
        )
        if summary.terminated_early:
            _release_stdout()

    except S3ToolsError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("sample")
def sample_cmd(
    bucket_or_uri: Annotated[
        str, bucket_or_uri_argument("The bucket or URI whose records should be sampled")
    ],
    prefix: Annotated[Optional[str], prefix_argument()] = None,
    key_regex: Annotated[Optional[str], key_regex_option()] = None,
    depth: Annotated[
        int, typer.Option("--depth", "-d", min=1, help="Deepest key path level to count")
    ] = 3,
    parse: Annotated[
        Optional[list[str]],
        typer.Option("--parse", "-p", help="Parse string values at this path as JSON"),
    ] = None,
    inspect_arrays: Annotated[
        bool,
        typer.Option("--inspect-arrays", "-a", help="Descend into array items"),
    ] = False,
    access_key_id: Annotated[Optional[str], aws_access_key_option()] = None,
    secret_access_key: Annotated[Optional[str], aws_secret_key_option()] = None,
    session_token: Annotated[Optional[str], aws_session_token_option()] = None,
    region_name: Annotated[Optional[str], aws_region_option()] = None,
    endpoint_url: Annotated[Optional[str], aws_endpoint_url_option()] = None,
    aws_profile: Annotated[Optional[str], aws_profile_option()] = None,
    quiet: Annotated[bool, quiet_option()] = False,
    verbose: Annotated[bool, verbose_option()] = False,
    report_frequency: Annotated[Optional[float], report_frequency_option()] = None,
) -> None:
    """
    Count key paths by type in JSON-lines records (gzip is detected).

    Examples:
        s3-tools sample s3://bucket/events/ --depth 2 --parse payload
    """
    try:
        config = _create_storage_config(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            region_name=region_name,
            endpoint_url=endpoint_url,
            aws_profile=aws_profile,
        )
        context = _open_context(
            config, quiet=quiet, verbose=verbose, report_frequency=report_frequency
        )
        summary = sample_prefix(
            context,
            bucket_or_uri,
            prefix=prefix,
            key_regex=key_regex,
            depth=depth,
            inspect_arrays=inspect_arrays,
            parse_paths=parse or [],
        )
        typer.echo(json.dumps(summary.as_dict(), indent=2))

    except S3ToolsError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("list-multipart")
def list_multipart_cmd(
    bucket_or_uri: Annotated[
        str, bucket_or_uri_argument("The bucket or URI whose uploads should be listed")
    ],
    prefix: Annotated[Optional[str], prefix_argument()] = None,
    delimiter: Annotated[
        Optional[str],
        typer.Option("--delimiter", "-d", help="Group keys into common prefixes"),
    ] = None,
    limit: Annotated[
        Optional[int],
        typer.Option("--limit", "-l", min=0, help="Maximum uploads to list"),
    ] = None,
    page_size: Annotated[
        int,
        typer.Option("--page-size", min=1, max=1000, help="Uploads per listing request"),
    ] = settings.page_size,
    parts: Annotated[
        bool, typer.Option("--parts", help="Count the parts and bytes of each upload")
    ] = False,
    file: Annotated[
        Optional[str],
        typer.Option("--file", "-f", help="Write one JSON record per upload to this file"),
    ] = None,
    access_key_id: Annotated[Optional[str], aws_access_key_option()] = None,
    secret_access_key: Annotated[Optional[str], aws_secret_key_option()] = None,
    session_token: Annotated[Optional[str], aws_session_token_option()] = None,
    region_name: Annotated[Optional[str], aws_region_option()] = None,
    endpoint_url: Annotated[Optional[str], aws_endpoint_url_option()] = None,
    aws_profile: Annotated[Optional[str], aws_profile_option()] = None,
    verbose: Annotated[bool, verbose_option()] = False,
) -> None:
    """
    List incomplete multipart uploads.

    Examples:
        s3-tools list-multipart s3://bucket/backups/ --parts -f uploads.ndjson
    """
    try:
        config = _create_storage_config(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            region_name=region_name,
            endpoint_url=endpoint_url,
            aws_profile=aws_profile,
        )

        with _record_writer(file) as writer:
            context = _open_context(config, quiet=True, verbose=verbose, records=writer)
            uploads, more = list_multipart_uploads(
                context,
                bucket_or_uri,
                prefix=prefix,
                delimiter=delimiter,
                limit=limit,
                page_size=page_size,
                include_parts=parts,
            )

        for upload in uploads:
            started = upload.timestamp.strftime("%Y-%m-%d %H:%M:%S") if upload.timestamp else "-"
            line = f"  {started} {upload.uri} [{upload.upload_id}]"
            if upload.parts is not None:
                line += f" {upload.parts} parts, {format_bytes(upload.bytes or 0)}"
            typer.echo(line)

        if more:
            typer.echo(f"Listed {len(uploads)} entries (more available).", err=True)
        else:
            typer.echo(f"All {len(uploads)} entries listed.", err=True)
        if file:
            typer.echo(f"Wrote {len(uploads)} records to {file}", err=True)

    except (S3ToolsError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("parse-uri")
def parse_uri_cmd(
    uri: Annotated[str, typer.Argument(help="S3 URI, e.g. s3://bucket/key")],
) -> None:
    """
    Translate an S3 URI to "<bucket> <key>" format.
    """
    location = parse_uri(uri)
    if not uri.startswith("s3://") or not location.bucket or not location.key:
        typer.echo("Error: Invalid S3 URI format", err=True)
        raise typer.Exit(1)

    typer.echo(f"{location.bucket} {location.key}")


@app.command("make-uri")
def make_uri_cmd(
    bucket: Annotated[str, typer.Argument(help="Bucket name")],
    key: Annotated[str, typer.Argument(help="Key within the bucket")],
) -> None:
    """
    Translate "<bucket> <key>" to an S3 URI.
    """
    if not bucket:
        typer.echo("Error: Invalid bucket", err=True)
        raise typer.Exit(1)
    if not key:
        typer.echo("Error: Invalid key", err=True)
        raise typer.Exit(1)

    typer.echo(format_uri(bucket, key))


if __name__ == "__main__":
    app()
