from promptship.cli import app

app()
