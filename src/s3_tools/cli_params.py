"""Shared CLI parameter definitions.

Every command that talks to S3 accepts the same connection options, and
most of the bulk commands share the same target, filter and reporting
options. They are defined once here and used as ``Annotated`` metadata in
the command signatures:

    @app.command()
    def my_command(
        region_name: Annotated[Optional[str], aws_region_option()] = None,
        quiet: Annotated[bool, quiet_option()] = False,
    ):
        pass

Parameter Categories:
    - Target parameters: the bucket-or-URI argument and its optional key
    - AWS parameters: credentials, region and endpoint
    - Reporting parameters: progress frequency, quiet and verbose modes
    - Filter parameters: key regex
"""

from typing import Annotated, Optional

import typer

from s3_tools.core import settings


def bucket_or_uri_argument(
    help: str = "The bucket containing the object, or the full URI of the object",
) -> Annotated[str, typer.Argument]:
    """Positional bucket name or full S3 URI."""
    return typer.Argument(help=help)


def key_argument(help: str = "Key identifying the object within the bucket"):
    """Optional positional key following a bare bucket name."""
    return typer.Argument(help=help)


def prefix_argument() -> Annotated[Optional[str], typer.Argument]:
    """Optional positional prefix following a bare bucket name."""
    return typer.Argument(help="A prefix to which the operation is limited")


def aws_access_key_option() -> Annotated[Optional[str], typer.Option]:
    """AWS access key ID option."""
    return typer.Option("--access-key-id", help="AWS access key ID")


def aws_secret_key_option() -> Annotated[Optional[str], typer.Option]:
    """AWS secret access key option."""
    return typer.Option("--secret-access-key", help="AWS secret access key")


def aws_session_token_option() -> Annotated[Optional[str], typer.Option]:
    """AWS session token option."""
    return typer.Option("--session-token", help="AWS session token")


def aws_region_option() -> Annotated[Optional[str], typer.Option]:
    """AWS region option."""
    return typer.Option("--region", help="AWS region name (default: us-east-1)")


def aws_endpoint_url_option() -> Annotated[Optional[str], typer.Option]:
    """AWS endpoint URL option."""
    return typer.Option("--endpoint-url", help="Custom S3 endpoint URL")


def aws_profile_option() -> Annotated[Optional[str], typer.Option]:
    """AWS profile option."""
    return typer.Option("--aws-profile", help="AWS CLI profile name")


def key_regex_option() -> Annotated[Optional[str], typer.Option]:
    """Key filter option."""
    return typer.Option(
        "--key-regex",
        "-k",
        help="Only include keys whose names match the regular expression",
    )


def report_frequency_option() -> Annotated[float, typer.Option]:
    """Progress report frequency option."""
    return typer.Option(
        "--report-frequency",
        "-r",
        min=0.0,
        help=(
            "Print progress at most this often, in seconds "
            f"(default: {settings.report_frequency})"
        ),
    )


def quiet_option() -> Annotated[bool, typer.Option]:
    """Quiet mode option."""
    return typer.Option("--quiet", help="Only print output on completion or error")


def verbose_option() -> Annotated[bool, typer.Option]:
    """Verbose logging option."""
    return typer.Option("--verbose", "-v", help="Log progress details to stderr")


def records_option() -> Annotated[Optional[str], typer.Option]:
    """NDJSON records output option."""
    return typer.Option(
        "--records",
        help="Write one JSON record per affected key to this file ('-' for stdout)",
    )
