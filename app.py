"""WSGI entry point. ``create_app`` registers every route, including /health."""

from bracketbattle import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=27272)  # nosec
