from kusari_uploader.cli import app

if __name__ == "__main__":
    app()
