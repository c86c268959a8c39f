#!/usr/bin/env python3
"""
sftpdeck-server - HTTP backend for the remote file manager.

Every route receives the target host, user and port plus the private key
as a multipart ``pemFile`` upload, runs one file operation through the
shared FileManager and answers with the operation's result envelope:
``{"success": true, "data": ...}`` or ``{"success": false, "error": ..., "code": ...}``.

Usage:
    sftpdeck-server
    python -m sftpdeck_server.app
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import PurePosixPath
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from sftpdeck import __version__
from sftpdeck.config import SftpDeckConfig, get_config, validate_config
from sftpdeck.endpoint import Credentials, EndpointKey
from sftpdeck.exceptions import ConfigurationError
from sftpdeck.manager import FileManager
from sftpdeck.models import OperationResult, PermissionChange

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 64 * 1024


class Target:
    """Endpoint and credentials parsed from a request's form fields."""

    def __init__(self, endpoint: EndpointKey, credentials: Credentials):
        self.endpoint = endpoint
        self.credentials = credentials


async def get_target(
    ip: str = Form(...),
    username: str = Form(...),
    port: int = Form(22),
    pem_file: UploadFile = File(..., alias="pemFile"),
    passphrase: Optional[str] = Form(None),
) -> Target:
    """Build the endpoint key and credentials; the key upload is read fully and closed."""
    try:
        private_key = await pem_file.read()
    finally:
        await pem_file.close()

    return Target(
        endpoint=EndpointKey(host=ip, user=username, port=port),
        credentials=Credentials(private_key=private_key, passphrase=passphrase or None),
    )


def get_manager(request: Request) -> FileManager:
    return request.app.state.manager


def to_response(result: OperationResult, failure_status: int = 500) -> JSONResponse:
    status = 200 if result.success else failure_status
    return JSONResponse(result.to_response(), status_code=status)


def upload_name(filename: Optional[str]) -> str:
    """Last path component of a client-supplied file name."""
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    return name or "upload"


async def iter_upload(upload: UploadFile, chunk_size: int = UPLOAD_CHUNK_SIZE) -> AsyncIterator[bytes]:
    while True:
        chunk = await upload.read(chunk_size)
        if not chunk:
            break
        yield chunk


def create_app(config: Optional[SftpDeckConfig] = None, manager: Optional[FileManager] = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Configuration object. If None, loads from environment.
        manager: FileManager to serve. If None, one is created at startup.

    Returns:
        Configured FastAPI app
    """
    config = config or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manager is None:
            validate_config(config)
            app.state.manager = FileManager(config)
        else:
            app.state.manager = manager
        logger.info("sftpdeck-server started")
        try:
            yield
        finally:
            await app.state.manager.shutdown()
            logger.info("sftpdeck-server stopped")

    app = FastAPI(
        title="sftpdeck",
        description="Remote file manager over SSH/SFTP",
        version=__version__,
        lifespan=lifespan,
    )

    @app.post("/api/list")
    async def list_directory(
        path: str = Form(...),
        target: Target = Depends(get_target),
        files: FileManager = Depends(get_manager),
    ):
        result = await files.list_directory(target.endpoint, target.credentials, path)
        return to_response(result)

    @app.post("/api/createFolder")
    async def create_folder(
        path: str = Form(...),
        folder_name: str = Form(..., alias="folderName"),
        target: Target = Depends(get_target),
        files: FileManager = Depends(get_manager),
    ):
        result = await files.create_directory(target.endpoint, target.credentials, path, folder_name)
        return to_response(result)

    @app.post("/api/upload")
    async def upload(
        path: str = Form(...),
        file_to_upload: UploadFile = File(..., alias="fileToUpload"),
        target: Target = Depends(get_target),
        files: FileManager = Depends(get_manager),
    ):
        try:
            result = await files.upload_file(
                target.endpoint,
                target.credentials,
                path,
                upload_name(file_to_upload.filename),
                iter_upload(file_to_upload),
            )
        finally:
            await file_to_upload.close()
        return to_response(result)

    @app.post("/api/readFile")
    async def read_file(
        path: str = Form(...),
        target: Target = Depends(get_target),
        files: FileManager = Depends(get_manager),
    ):
        result = await files.read_file(target.endpoint, target.credentials, path)
        return to_response(result)

    @app.post("/api/saveFile")
    async def save_file(
        path: str = Form(...),
        content: str = Form(""),
        target: Target = Depends(get_target),
        files: FileManager = Depends(get_manager),
    ):
        result = await files.write_file(target.endpoint, target.credentials, path, content)
        return to_response(result)

    @app.post("/api/rename")
    async def rename(
        current_path: str = Form(..., alias="currentPath"),
        old_name: str = Form(..., alias="oldName"),
        new_name: str = Form(..., alias="newName"),
        target: Target = Depends(get_target),
        files: FileManager = Depends(get_manager),
    ):
        result = await files.rename_item(target.endpoint, target.credentials, current_path, old_name, new_name)
        return to_response(result)

    @app.post("/api/delete")
    async def delete(
        path: str = Form(...),
        is_directory: str = Form("false", alias="isDirectory"),
        target: Target = Depends(get_target),
        files: FileManager = Depends(get_manager),
    ):
        result = await files.delete_item(
            target.endpoint, target.credentials, path, is_directory.strip().lower() == "true"
        )
        return to_response(result)

    @app.post("/api/permissions")
    async def permissions(
        path: str = Form(...),
        permissions: str = Form(...),
        target: Target = Depends(get_target),
        files: FileManager = Depends(get_manager),
    ):
        try:
            change = PermissionChange.model_validate_json(permissions)
        except ValidationError as e:
            return to_response(
                OperationResult.fail(f"Invalid permissions: {e}", "INVALID_REQUEST"), failure_status=400
            )
        result = await files.change_permissions(target.endpoint, target.credentials, path, change)
        return to_response(result)

    @app.post("/api/copy")
    async def copy(
        source_path: str = Form(..., alias="sourcePath"),
        destination_path: str = Form(..., alias="destinationPath"),
        target: Target = Depends(get_target),
        files: FileManager = Depends(get_manager),
    ):
        result = await files.copy_item(target.endpoint, target.credentials, source_path, destination_path)
        return to_response(result)

    @app.post("/api/move")
    async def move(
        source_path: str = Form(..., alias="sourcePath"),
        destination_path: str = Form(..., alias="destinationPath"),
        target: Target = Depends(get_target),
        files: FileManager = Depends(get_manager),
    ):
        result = await files.move_item(target.endpoint, target.credentials, source_path, destination_path)
        return to_response(result)

    @app.post("/api/disconnect")
    async def disconnect(
        ip: str = Form(...),
        username: str = Form(...),
        port: int = Form(22),
        files: FileManager = Depends(get_manager),
    ):
        result = await files.disconnect(EndpointKey(host=ip, user=username, port=port))
        return to_response(result, failure_status=404)

    @app.get("/health")
    async def health_check(files: FileManager = Depends(get_manager)):
        """Health check endpoint."""
        return {"status": "ok", "service": "sftpdeck", "sessions": len(files.registry)}

    return app


def main():
    """Run the server."""
    try:
        config = get_config()
        validate_config(config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print("Starting sftpdeck server...")
    print(f"  Host: {config.host}")
    print(f"  Port: {config.port}")
    print(f"  Host key checking: {'on' if config.known_hosts_path else 'off'}")
    print()

    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level="warning")


if __name__ == "__main__":
    main()
