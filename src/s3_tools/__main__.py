from .cli import app

app(prog_name="s3-tools")
