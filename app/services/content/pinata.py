import json
import logging
import os
import time
from traceback import format_exc
from typing import BinaryIO, Dict, Optional

import requests

from app.errors import ConfigurationError, ContentError
from app.models.content import PinResult
from config import PINATA_API_KEY, PINATA_API_SECRET, PINATA_API_URL, PINATA_GATEWAY, PINATA_JWT

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

PIN_SOURCE = "AI Video Generator"


class PinataService:
    """Pins files on IPFS through Pinata and reads them back through its gateway."""

    UPLOAD_TIMEOUT = 300  # seconds, videos can be large
    GATEWAY_TIMEOUT = 30

    def __init__(
        self,
        api_key: Optional[str] = PINATA_API_KEY,
        api_secret: Optional[str] = PINATA_API_SECRET,
        jwt: Optional[str] = PINATA_JWT,
        gateway: str = PINATA_GATEWAY,
        api_url: str = PINATA_API_URL,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.jwt = jwt
        self.gateway = gateway
        self.api_url = api_url.rstrip("/")

    def _auth_headers(self) -> Dict[str, str]:
        # NOTE: Scoped JWTs are preferred, key/secret pairs still work
        if self.jwt:
            return {"Authorization": f"Bearer {self.jwt}"}
        if self.api_key and self.api_secret:
            return {
                "pinata_api_key": self.api_key,
                "pinata_secret_api_key": self.api_secret,
            }
        raise ConfigurationError("Pinata credentials are not configured")

    def gateway_url(self, cid: str) -> str:
        """Public URL of a CID. Values that already are gateway paths are returned as is."""
        if "ipfs/" in cid:
            return cid
        return f"https://{self.gateway}/ipfs/{cid}"

    def pin_file(
        self,
        file: BinaryIO,
        filename: str,
        content_type: str = "application/octet-stream",
        keyvalues: Optional[Dict[str, str]] = None,
    ) -> PinResult:
        """
        Pin a file on IPFS.

        Args:
            file: Open binary file or stream
            filename: Name recorded in the pin metadata
            content_type: MIME type of the file
            keyvalues: Extra pin metadata

        Returns:
            PinResult with the CID and its gateway URL

        Raises:
            ConfigurationError: If no Pinata credentials are configured
            ContentError: If Pinata rejected the upload or could not be reached
        """
        metadata = {
            "name": filename,
            "keyvalues": {
                "source": PIN_SOURCE,
                "timestamp": str(int(time.time() * 1000)),
                **(keyvalues or {}),
            },
        }
        data = {
            "pinataMetadata": json.dumps(metadata),
            "pinataOptions": json.dumps({"cidVersion": 1}),
        }

        logger.info(f"Uploading {filename} to IPFS via Pinata")
        try:
            response = requests.post(
                f"{self.api_url}/pinning/pinFileToIPFS",
                headers=self._auth_headers(),
                files={"file": (filename, file, content_type)},
                data=data,
                timeout=self.UPLOAD_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.error(f"Error uploading to IPFS: {str(e)}\n{format_exc()}")
            raise ContentError(f"Failed to upload to IPFS: {str(e)}") from e

        if not response.ok:
            raise ContentError(
                f"Failed to upload to IPFS: Pinata API error ({response.status_code}): {response.text}"
            )

        cid = response.json()["IpfsHash"]
        gateway_url = self.gateway_url(cid)
        logger.info(f"Uploaded {filename} to IPFS with CID: {cid}")
        return PinResult(cid=cid, gateway_url=gateway_url, pinata_url=gateway_url)

    def pin_path(self, path: str, filename: Optional[str] = None) -> PinResult:
        """Pin a file from disk. ``.mp4`` files are pinned as ``video/mp4``."""
        filename = filename or os.path.basename(path)
        content_type = (
            "video/mp4" if filename.endswith(".mp4") else "application/octet-stream"
        )
        with open(path, "rb") as f:
            return self.pin_file(f, filename, content_type)

    def content_exists(self, cid: str) -> bool:
        """Whether the gateway can serve a CID."""
        try:
            response = requests.head(
                self.gateway_url(cid), timeout=self.GATEWAY_TIMEOUT, allow_redirects=True
            )
        except requests.RequestException as e:
            logger.error(f"Error checking IPFS status for {cid}: {str(e)}")
            return False
        return response.ok

    def open_content(self, cid: str) -> requests.Response:
        """
        Open a streaming gateway response for a CID. The caller closes it.

        Raises:
            ContentError: If the gateway failed to serve the content
        """
        try:
            response = requests.get(
                self.gateway_url(cid), stream=True, timeout=self.GATEWAY_TIMEOUT
            )
        except requests.RequestException as e:
            logger.error(f"Error downloading {cid} from IPFS: {str(e)}\n{format_exc()}")
            raise ContentError(f"Failed to download from IPFS: {str(e)}") from e

        if not response.ok:
            response.close()
            raise ContentError(
                f"Failed to download from IPFS: gateway returned {response.status_code}"
            )
        return response
