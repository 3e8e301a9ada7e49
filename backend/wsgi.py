from chargesafe import create_app

app = create_app()
