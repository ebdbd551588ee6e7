"""Routes package: Blueprint registration for all API endpoints.

Each blueprint module defines a `bp` variable mounted under /api/v1.
"""


def register_blueprints(app):
    """Import and register all API blueprints on the Flask app."""
    from routes.system import bp as system_bp
    from routes.config import bp as config_bp
    from routes.providers import bp as providers_bp
    from routes.library import bp as library_bp

    for blueprint in [
        system_bp,
        config_bp,
        providers_bp,
        library_bp,
    ]:
        app.register_blueprint(blueprint)
