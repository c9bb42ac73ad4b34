from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

"""Province normalization for Thai marketplace addresses.

Free-text province values (Thai, romanized, abbreviated, with administrative
prefixes) are mapped to one of the 77 canonical Thai province names.

Matching is substring based in both directions: real input is dominated by
truncated or expanded administrative prefixes rather than typos. Short
romanized aliases ("nan", "tak") can therefore match inside unrelated longer
text; table order is the tie-break.
"""

__all__ = [
    "PROVINCE_ALIASES",
    "TOTAL_PROVINCES",
    "ProvinceNormalizer",
    "all_provinces",
    "clean_province_text",
    "is_valid_province",
    "normalize_province",
]

PROVINCE_ALIASES: Mapping[str, tuple[str, ...]] = {
    "กรุงเทพมหานคร": (
        "bangkok", "bkk", "กทม", "กทม.", "กรุงเทพ", "กรุงเทพฯ",
        "krungthep", "krung thep", "กท.", "กรุงเทพมหานครฯ",
    ),
    "กระบี่": ("krabi", "กระบี"),
    "กาญจนบุรี": ("kanchanaburi", "kanchanaburi province", "กาญจน์", "กจ."),
    "กาฬสินธุ์": ("kalasin", "kalasin province", "กส.", "กาฬสินทุ์"),
    "กำแพงเพชร": ("kamphaeng phet", "กำแพง", "กพ."),
    "ขอนแก่น": ("khon kaen", "khonkaen", "ขก.", "ขอนแก่น"),
    "จันทบุรี": ("chanthaburi", "จบ.", "จันท์"),
    "ฉะเชิงเทรา": ("chachoengsao", "ฉช.", "ฉะเชิง"),
    "ชลบุรี": ("chonburi", "chon buri", "ชบ.", "ชลบุรี"),
    "ชัยนาท": ("chainat", "chai nat", "ชน."),
    "ชัยภูมิ": ("chaiyaphum", "chaiya phum", "ชย."),
    "ชุมพร": ("chumphon", "chumporn", "ชพ."),
    "เชียงราย": ("chiang rai", "chiangrai", "ชร."),
    "เชียงใหม่": ("chiang mai", "chiangmai", "ชม.", "เชียงใหม"),
    "ตรัง": ("trang", "ตรัง"),
    "ตราด": ("trat", "ตราด"),
    "ตาก": ("tak", "ตาก"),
    "นครนายก": ("nakhon nayok", "นย."),
    "นครปฐม": ("nakhon pathom", "นฐ."),
    "นครพนม": ("nakhon phanom", "นพ."),
    "นครราชสีมา": ("nakhon ratchasima", "korat", "โคราช", "นม.", "นครราชสีม"),
    "นครศรีธรรมราช": ("nakhon si thammarat", "nakhon sri thammarat", "นศ.", "เทศบาลนครนครศรีธรรมราช"),
    "นครสวรรค์": ("nakhon sawan", "นว."),
    "นนทบุรี": ("nonthaburi", "นบ.", "นนท์"),
    "นราธิวาส": ("narathiwat", "นธ."),
    "น่าน": ("nan", "น่าน"),
    "บึงกาฬ": ("bueng kan", "buengkan", "บก."),
    "บุรีรัมย์": ("buri ram", "buriram", "บร.", "บุรีรัมย์"),
    "ปทุมธานี": ("pathum thani", "pathumthani", "ปท."),
    "ประจวบคีรีขันธ์": ("prachuap khiri khan", "prachuap", "ปข."),
    "ปราจีนบุรี": ("prachin buri", "prachinburi", "ปจ."),
    "ปัตตานี": ("pattani", "ปน."),
    "พระนครศรีอยุธยา": ("phra nakhon si ayutthaya", "ayutthaya", "ayuthaya", "อยุธยา", "พระนครศรีอยุธยา", "อย."),
    "พังงา": ("phang nga", "phangnga", "พง."),
    "พัทลุง": ("phatthalung", "พท."),
    "พิจิตร": ("phichit", "พจ."),
    "พิษณุโลก": ("phitsanulok", "พล."),
    "เพชรบุรี": ("phetchaburi", "เพชรบุรี", "พบ."),
    "เพชรบูรณ์": ("phetchabun", "เพชรบูรณ์", "พช."),
    "แพร่": ("phrae", "แพร่"),
    "พะเยา": ("phayao", "พย."),
    "ภูเก็ต": ("phuket", "phukett", "ภก."),
    "มหาสารคาม": ("maha sarakham", "mahasarakham", "มค."),
    "มุกดาหาร": ("mukdahan", "มห."),
    "แม่ฮ่องสอน": ("mae hong son", "maehongson", "มส."),
    "ยโสธร": ("yasothon", "ยส."),
    "ยะลา": ("yala", "ยล."),
    "ร้อยเอ็ด": ("roi et", "roiet", "รอ."),
    "ระนอง": ("ranong", "รน."),
    "ระยอง": ("rayong", "รย."),
    "ราชบุรี": ("ratchaburi", "ratburi", "รบ."),
    "ลพบุรี": ("lopburi", "lop buri", "ลบ."),
    "ลำปาง": ("lampang", "ลป."),
    "ลำพูน": ("lamphun", "ลพ."),
    "เลย": ("loei", "ลย."),
    "ศรีสะเกษ": ("si sa ket", "sisaket", "ศก."),
    "สกลนคร": ("sakon nakhon", "sakonnakhon", "สน."),
    "สงขลา": ("songkhla", "สข."),
    "สตูล": ("satun", "สต."),
    "สมุทรปราการ": ("samut prakan", "samutprakan", "สป."),
    "สมุทรสงคราม": ("samut songkhram", "samutsongkhram", "สส."),
    "สมุทรสาคร": ("samut sakhon", "samutsakhon", "สค."),
    "สระแก้ว": ("sa kaeo", "sakaeo", "สก."),
    "สระบุรี": ("saraburi", "sara buri", "สบ."),
    "สิงห์บุรี": ("sing buri", "singburi", "สห."),
    "สุโขทัย": ("sukhothai", "สท."),
    "สุพรรณบุรี": ("suphan buri", "suphanburi", "สพ."),
    "สุราษฎร์ธานี": ("surat thani", "suratthani", "สฎ."),
    "สุรินทร์": ("surin", "สร."),
    "หนองคาย": ("nong khai", "nongkhai", "หค."),
    "หนองบัวลำภู": ("nong bua lamphu", "nongbualamphu", "หบ."),
    "อ่างทอง": ("ang thong", "angthong", "อท."),
    "อำนาจเจริญ": ("amnat charoen", "amnatcharoen", "อจ."),
    "อุดรธานี": ("udon thani", "udonthani", "อด."),
    "อุตรดิตถ์": ("uttaradit", "อต."),
    "อุทัยธานี": ("uthai thani", "uthaitthani", "อน."),
    "อุบลราชธานี": ("ubon ratchathani", "ubon", "อบ."),
}

TOTAL_PROVINCES = 77

# 先頭から順に 1 回ずつ除去 ("เทศบาลนคร" は "เทศบาล" より先)
_LEADING_PREFIXES = ("จังหวัด", "จ.", "เทศบาลนคร", "เทศบาล", "อำเภอ", "ตำบล")
_TRAILING_SUFFIX = "province"
_COLLAPSE = re.compile(r"[.ฯ\s]+")


def all_provinces() -> list[str]:
    return list(PROVINCE_ALIASES)


def is_valid_province(name: str) -> bool:
    return name in PROVINCE_ALIASES


def clean_province_text(text: str) -> str:
    """Lower-case, strip administrative prefixes / "province" suffix, collapse punctuation."""
    cleaned = str(text).lower().strip()
    for prefix in _LEADING_PREFIXES:
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix):]
    if cleaned.endswith(_TRAILING_SUFFIX):
        cleaned = cleaned[: -len(_TRAILING_SUFFIX)]
    return _COLLAPSE.sub(" ", cleaned).strip()


class ProvinceNormalizer:
    """Province matcher over the static table merged with an override table.

    The merged alias table is built once per instance (override wins on key
    collision, new keys are appended after the static ones) and never written
    back anywhere.
    """

    def __init__(self, overrides: Mapping[str, Sequence[str]] | None = None) -> None:
        merged: dict[str, Sequence[str]] = dict(PROVINCE_ALIASES)
        merged.update(overrides or {})
        self._aliases: list[tuple[str, tuple[str, ...]]] = [
            (canonical, tuple(a.lower() for a in aliases if a and a.strip()))
            for canonical, aliases in merged.items()
        ]

    def normalize(self, text: str | None) -> str | None:
        """Canonical province for ``text`` or None when nothing matches."""
        if not text or not isinstance(text, str):
            return None
        cleaned = clean_province_text(text)
        if not cleaned:
            return None

        for canonical in PROVINCE_ALIASES:
            if canonical.lower() == cleaned:
                return canonical

        for canonical, aliases in self._aliases:
            for alias in aliases:
                if alias in cleaned or cleaned in alias:
                    return canonical
        return None


def normalize_province(
    text: str | None, overrides: Mapping[str, Sequence[str]] | None = None
) -> str | None:
    """One-off convenience wrapper around ProvinceNormalizer."""
    return ProvinceNormalizer(overrides).normalize(text)
