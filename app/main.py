import uvicorn
import time

from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from starlette.responses import JSONResponse

from api.utils.logger import logger, myself, LEIF
from chain.client import ChainClient
from core.config import API_V1_STR, CFG, PROJECT_NAME, SQLALCHEMY_DATABASE_URI
from db.session import get_db, get_engine, get_sessionmaker, init_db

from api.v1.routes.profiles import profiles_router
from api.v1.routes.events import events_router
from api.v1.routes.participants import participants_router
from api.v1.routes.checkins import checkins_router
from api.v1.routes.webhooks import webhooks_router

DEBUG = CFG.debug


def create_app(engine=None, chain: ChainClient = None) -> FastAPI:
    """
    Build the api; engine and chain client default to the configured
    database and rpc node, and are created when the app starts.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.engine = engine or get_engine(SQLALCHEMY_DATABASE_URI)
        app.state.SessionLocal = get_sessionmaker(app.state.engine)
        app.state.chain = chain or ChainClient(CFG.rpcUrl, CFG.rpcTimeout)
        if CFG.createTables:
            init_db(app.state.engine)
        logger.info(f'{PROJECT_NAME} started ({app.state.engine.dialect.name}, rpc: {app.state.chain.rpcUrl})')

        yield

        app.state.chain.close()
        app.state.engine.dispose()
        logger.info(f'{PROJECT_NAME} stopped')

    app = FastAPI(
        title=PROJECT_NAME,
        docs_url="/api/docs",
        openapi_url="/api",
        lifespan=lifespan,
    )

    #region Routers
    app.include_router(profiles_router,     prefix=f"{API_V1_STR}/profiles", tags=["profiles"])
    app.include_router(events_router,       prefix=f"{API_V1_STR}/events",   tags=["events"])
    app.include_router(participants_router, prefix=API_V1_STR,               tags=["participants"])
    app.include_router(checkins_router,     prefix=API_V1_STR,               tags=["checkins"])
    app.include_router(webhooks_router,     prefix=f"{API_V1_STR}/webhooks", tags=["webhooks"])
    #endregion Routers

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in CFG.corsOrigins if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # all requests are timed and logged
    @app.middleware("http")
    async def add_logging_and_process_time(req: Request, call_next):
        try:
            beg = time.time()
            resNext = await call_next(req)
            tot = str(round((time.time() - beg) * 1000))
            resNext.headers["X-Process-Time-MS"] = tot
            logger.log(LEIF, f"""{req.method} {req.url}: {tot}ms""".strip())
            return resNext

        except Exception as e:
            logger.error(f'ERR:middleware:{myself()}: {e}')
            return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'status': 'error'})

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": PROJECT_NAME}

    @app.get(f"{API_V1_STR}/test-db")
    def test_db(db=Depends(get_db)):
        try:
            db.execute(text('select 1'))
            return {"status": "ok", "database": db.get_bind().dialect.name}

        except Exception as e:
            logger.error(f'ERR:{myself()}: {e}')
            return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'status': 'error', 'detail': 'database unreachable'})

    @app.get("/api/ping")
    async def ping():
        return {"hello": "world"}

    return app


app = create_app()

# MAIN
if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", reload=DEBUG, port=8000)
