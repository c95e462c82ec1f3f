from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.server.routers.content_routes import content_router
from app.server.routers.metadata_routes import metadata_router
from app.server.routers.price_routes import price_router
from app.server.routers.video_routes import video_router
from app.server.validation import InvalidRequest, format_errors, invalid_request_response
from config import ENV

app = FastAPI()

# Define the allowed origins
origins = [
    "http://localhost:5173",
    "http://localhost:8080",
    # Add other origins as needed
]
if ENV == "d":
    origins.append("http://127.0.0.1:5173")

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,  # Allows requests from these origins
    allow_credentials=True,
    allow_methods=["*"],  # Allows all methods (GET, POST, etc.)
    allow_headers=["*"],  # Allows all headers
)


@app.exception_handler(InvalidRequest)
async def handle_invalid_request(request: Request, exc: InvalidRequest):
    return invalid_request_response(exc)


# Bodies FastAPI cannot parse at all, e.g. malformed JSON
@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    return invalid_request_response(InvalidRequest(format_errors(exc.errors())))


@app.get("/", tags=["root"])
def root():
    return {"message": "success"}


# Include the routers in the main app with a prefix
app.include_router(video_router, prefix="/videos")
app.include_router(content_router, prefix="/content")
app.include_router(metadata_router, prefix="/metadata")
app.include_router(price_router, prefix="/price")

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
