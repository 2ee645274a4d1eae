import xml.etree.ElementTree as ET

from shared.models.message import Message
from shared.stores.XmlLogStore import XmlLogStore, clean_xml_text, now_ms


class MessageStore(XmlLogStore[Message]):
    """Conversation messages in ``files/conversations/{id}.xml``.

    Layout::

        <messages>
          <message id="..." role="user" timestamp="1700000000000" usedRag="true">
            <content>...</content>
          </message>
        </messages>
    """

    def _get_file_suffix(self) -> str:
        return ".xml"

    def _get_root_tag(self) -> str:
        return "messages"

    def _get_entry_tag(self) -> str:
        return "message"

    def _complete(self, entry: Message) -> Message:
        return entry.model_copy(update={
            "id": entry.id or self.new_id(),
            "timestamp": entry.timestamp or now_ms(),
        })

    def _entry_to_element(self, entry: Message) -> ET.Element:
        attrs = {"id": entry.id, "role": entry.role, "timestamp": str(entry.timestamp)}
        if entry.source_type:
            attrs["sourceType"] = entry.source_type
        if entry.source_url:
            attrs["sourceUrl"] = entry.source_url
        if entry.used_rag is not None:
            attrs["usedRag"] = "true" if entry.used_rag else "false"
        element = ET.Element("message", attrs)
        ET.SubElement(element, "content").text = clean_xml_text(entry.content)
        return element

    def _element_to_entry(self, element: ET.Element) -> Message:
        used_rag = element.get("usedRag")
        return Message(
            id=element.get("id"),
            role=element.get("role"),
            content=element.findtext("content", default=""),
            timestamp=int(element.get("timestamp", "0")),
            source_type=element.get("sourceType") or None,
            source_url=element.get("sourceUrl") or None,
            used_rag=None if used_rag is None else used_rag == "true",
        )
