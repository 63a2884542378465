import logging

import httpx

from cloudscale.exceptions import TransformError
from cloudscale.models import HandleRecord, ItemState, RunConfig, SourceFile
from cloudscale.orchestrator.session import RunSession
from cloudscale.protocols import IArchiveSink, IFetcher, IUploadClient
from cloudscale.services.archive import upscaled_name

logger = logging.getLogger(__name__)


class ItemPipeline:
    """Processes a single file: upload, fetch the upscaled asset, add it to the archive."""

    def __init__(self, uploader: IUploadClient, fetcher: IFetcher, session: RunSession, config: RunConfig):
        self._uploader = uploader
        self._fetcher = fetcher
        self._session = session
        self._config = config

    async def process(self, source: SourceFile, index: int, archive: IArchiveSink) -> str:
        """
        Run the three steps for one file.

        Returns:
            The archive entry name.

        Raises:
            UploadError: if the upload is rejected.
            TransformError: if the upscaled asset cannot be fetched.
        """
        await self._session.set_state(index, ItemState.UPLOADING, 15)
        logger.info("Uploading %s (%d bytes)...", source.name, source.size)
        public_id = await self._uploader.upload(source, self._config)

        logger.info(
            "Uploaded %s as %s, delete it from the Cloudinary media library if needed",
            source.name,
            public_id,
        )
        await self._session.emit_handle_created(
            HandleRecord(
                index=index,
                filename=source.name,
                public_id=public_id,
                cloud_name=self._config.cloud_name,
            )
        )

        await self._session.set_state(index, ItemState.TRANSFORMING, 45)
        url = self._config.transform_url(public_id)
        try:
            data = await self._fetcher.fetch(
                url,
                max_attempts=self._config.max_attempts,
                backoff=self._config.backoff,
            )
        except httpx.HTTPError as exc:
            raise TransformError(str(exc) or type(exc).__name__) from exc

        output_name = upscaled_name(source.name)
        archive.add(output_name, data)
        logger.debug("Added %s to archive (%d bytes)", output_name, len(data))
        return output_name
