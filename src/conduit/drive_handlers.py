"""Google Drive tool handlers."""

from __future__ import annotations

from typing import Any

from conduit.dispatch import Handler, ToolCall
from conduit.drive import (
    DEFAULT_EXPORT_MIME_TYPE,
    EXPORT_MIME_TYPES,
    FOLDER_MIME_TYPE,
    WORKSPACE_MIME_PREFIX,
    DriveClient,
)
from conduit.session import DriveSession

LIST_FIELDS = "files(id,name,mimeType,size,modifiedTime,parents)"
FILE_FIELDS = "id,name,mimeType,size,modifiedTime,createdTime,parents,webViewLink,webContentLink"


def build_list_query(query: str | None, folder_id: str | None) -> str | None:
    """Combine a free-text Drive query with a parent-folder restriction."""
    clauses = [query] if query else []
    if folder_id:
        clauses.append(f"'{folder_id}' in parents")
    return " and ".join(clauses) or None


async def drive_list_files(call: ToolCall) -> list[dict[str, Any]]:
    client: DriveClient = call.client
    args = call.arguments
    files = await client.list_files(
        build_list_query(args["query"], args["folderId"]),
        page_size=args["maxResults"],
        fields=LIST_FIELDS,
        order_by="modifiedTime desc",
    )
    return [
        {
            "id": item.get("id"),
            "name": item.get("name"),
            "mimeType": item.get("mimeType"),
            "size": item.get("size"),
            "modifiedTime": item.get("modifiedTime"),
            "isFolder": item.get("mimeType") == FOLDER_MIME_TYPE,
        }
        for item in files
    ]


async def drive_get_file(call: ToolCall) -> dict[str, Any]:
    client: DriveClient = call.client
    return await client.get_file(call.arguments["fileId"], fields=FILE_FIELDS)


async def drive_download_file(call: ToolCall) -> str:
    client: DriveClient = call.client
    file_id = call.arguments["fileId"]
    meta = await client.get_file(file_id, fields="id,name,mimeType")
    mime_type = meta.get("mimeType") or ""
    if mime_type.startswith(WORKSPACE_MIME_PREFIX):
        content = await client.export_text(
            file_id, EXPORT_MIME_TYPES.get(mime_type, DEFAULT_EXPORT_MIME_TYPE)
        )
    else:
        content = await client.download_text(file_id)
    return f"File: {meta.get('name')}\nContent:\n{content}"


async def drive_create_folder(call: ToolCall) -> str:
    client: DriveClient = call.client
    metadata: dict[str, Any] = {"name": call.arguments["name"], "mimeType": FOLDER_MIME_TYPE}
    if call.arguments["parentId"]:
        metadata["parents"] = [call.arguments["parentId"]]
    created = await client.create_metadata(metadata, fields="id,name,parents")
    return f"Created folder: {created.get('name')} (ID: {created.get('id')})"


async def drive_upload_file(call: ToolCall) -> str:
    client: DriveClient = call.client
    args = call.arguments
    metadata: dict[str, Any] = {"name": args["name"]}
    if args["folderId"]:
        metadata["parents"] = [args["folderId"]]
    created = await client.upload(
        metadata, args["content"], args["mimeType"] or "text/plain", fields="id,name,size"
    )
    return f"Uploaded file: {created.get('name')} (ID: {created.get('id')})"


async def drive_delete_file(call: ToolCall) -> str:
    client: DriveClient = call.client
    file_id = call.arguments["fileId"]
    meta = await client.get_file(file_id, fields="name")
    await client.delete(file_id)
    return f"Deleted file: {meta.get('name')} (ID: {file_id})"


def build_drive_handlers(session: DriveSession) -> dict[str, Handler]:
    """Map each Drive tool name to its handler; auth tools close over ``session``."""

    async def drive_authenticate(call: ToolCall) -> str:
        url = session.oauth.authorization_url()
        return f"Please open this URL in your browser to authenticate: {url}"

    async def drive_is_authenticated(call: ToolCall) -> dict[str, bool]:
        return {"authenticated": session.authenticated}

    return {
        "drive_authenticate": drive_authenticate,
        "drive_is_authenticated": drive_is_authenticated,
        "drive_list_files": drive_list_files,
        "drive_get_file": drive_get_file,
        "drive_download_file": drive_download_file,
        "drive_create_folder": drive_create_folder,
        "drive_upload_file": drive_upload_file,
        "drive_delete_file": drive_delete_file,
    }


__all__ = ["build_drive_handlers", "build_list_query"]
