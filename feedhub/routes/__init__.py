def register_blueprints(app):
    from feedhub.routes.health import health_bp
    from feedhub.routes.admin import admin_bp
    from feedhub.routes.articles import articles_bp
    from feedhub.routes.ai import ai_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(articles_bp, url_prefix='/api/articles')
    app.register_blueprint(ai_bp, url_prefix='/api/ai')
