"""
TaskPilot
Blueprint registry.
"""


def register_blueprints(app):
    from taskpilot.blueprints.health_bp import health_bp
    from taskpilot.blueprints.organizations_bp import organizations_bp
    from taskpilot.blueprints.projects_bp import projects_bp
    from taskpilot.blueprints.workspaces_bp import workspaces_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(organizations_bp)
    app.register_blueprint(workspaces_bp)
    app.register_blueprint(projects_bp)
