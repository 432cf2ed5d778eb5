# salesflow/middleware/db_middleware.py

class DBSessionMiddleware:
    """
    Кладёт сессию БД в request.state.db на время HTTP-запроса.
    Фабрика сессий берётся из app.state.database, созданного в lifespan.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        database = scope["app"].state.database
        state = scope.setdefault("state", {})
        state["db"] = database.session()
        try:
            await self.app(scope, receive, send)
        finally:
            # закрываем сессию только после завершения запроса
            await state["db"].close()
