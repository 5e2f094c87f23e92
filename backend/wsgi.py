from poscore import create_app

app = create_app()
