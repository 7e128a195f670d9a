"""
Main CLI application for kusari-uploader.

Defines the Typer application and command routing; business logic lives in
the service layer.
"""
import typer

from kusari_uploader.cli.commands.upload import upload_command


app = typer.Typer(help="kusari-uploader - upload files and SBOMs to a Kusari tenant")

app.command("upload", help="Upload a file or directory and optionally check SBOMs for blocked packages.")(upload_command)


@app.callback()
def main():
    """kusari-uploader - upload files and SBOMs to a Kusari tenant.

    Run 'kusari-uploader upload PATH' to upload a file or every file in a directory.
    """
