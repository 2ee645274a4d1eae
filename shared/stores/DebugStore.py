import json
import xml.etree.ElementTree as ET

from shared.models.message import DebugTraceEntry
from shared.stores.XmlLogStore import XmlLogStore, clean_xml_text, now_ms


class DebugStore(XmlLogStore[DebugTraceEntry]):
    """Provider request/response trace in ``files/conversations/{id}-debug.xml``.

    Entry content is arbitrary JSON, stored pretty-printed inside ``<content>``.
    """

    def _get_file_suffix(self) -> str:
        return "-debug.xml"

    def _get_root_tag(self) -> str:
        return "debugMessages"

    def _get_entry_tag(self) -> str:
        return "debugMessage"

    def _complete(self, entry: DebugTraceEntry) -> DebugTraceEntry:
        return entry.model_copy(update={
            "id": entry.id or self.new_id(),
            "timestamp": entry.timestamp or now_ms(),
        })

    def _entry_to_element(self, entry: DebugTraceEntry) -> ET.Element:
        element = ET.Element("debugMessage", {"id": entry.id, "type": entry.type, "timestamp": str(entry.timestamp)})
        ET.SubElement(element, "content").text = clean_xml_text(json.dumps(entry.content, indent=2, ensure_ascii=False, default=str))
        return element

    def _element_to_entry(self, element: ET.Element) -> DebugTraceEntry:
        raw = element.findtext("content", default="null")
        return DebugTraceEntry(
            id=element.get("id"),
            type=element.get("type"),
            content=json.loads(raw) if raw.strip() else None,
            timestamp=int(element.get("timestamp", "0")),
        )
