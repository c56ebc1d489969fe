"""HTTP routers mounted by :func:`classlens.api.app.create_app`."""
