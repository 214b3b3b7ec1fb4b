from core.exceptions import ConfigurationError, PageParseError
from ingestion.error_handling import ErrorClassifier
from ingestion.pages.base import BasePage
from ingestion.pages.delimited_page import DelimitedPage
from ingestion.pages.error_page import HttpErrorPage, MalformedPage
from ingestion.pages.json_page import JsonPage
from ingestion.pages.text_page import BlobPage, TextPage
from ingestion.pages.xml_page import XmlPage
from ingestion.transport import HttpResponse
from models.base import PageFormat
import logging

logger = logging.getLogger(__name__)


def create_page(
    config,
    response: HttpResponse,
    classifier: ErrorClassifier,
    is_error: bool = False
) -> BasePage:
    """
    Select the page parser for a response.

    A body that cannot be parsed at all becomes a page with a single invalid
    entry, so iteration goes on with the next page.
    """
    if is_error:
        return HttpErrorPage(response, classifier)

    page_format = config.format
    try:
        if page_format == PageFormat.JSON:
            return JsonPage(config, response)
        if page_format == PageFormat.XML:
            return XmlPage(config, response)
        if page_format == PageFormat.TSV:
            return DelimitedPage(config, response, "\t")
        if page_format == PageFormat.CSV:
            return DelimitedPage(config, response, ",")
        if page_format == PageFormat.TEXT:
            return TextPage(config, response)
        if page_format == PageFormat.BLOB:
            return BlobPage(config, response)
    except PageParseError as e:
        logger.warning(f"Malformed {page_format.value} page: {e.message}")
        return MalformedPage(response, e, config.error_handling, page_format=page_format)

    raise ConfigurationError(f"Unsupported page format: '{page_format}'", property_name="format")
