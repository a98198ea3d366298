from dotenv import load_dotenv
from fastapi import FastAPI

from kubeinfra.api.middleware import AuthMiddleware
from kubeinfra.api.routes import copy, infra
from kubeinfra.logging import setup_logger

load_dotenv()
logger = setup_logger("kubeinfra.api")

app = FastAPI(title="kubeinfra")
app.add_middleware(AuthMiddleware)

app.include_router(infra.router)
app.include_router(copy.router)
logger.debug("kubeinfra API routes registered")
