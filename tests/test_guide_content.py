from __future__ import annotations

import unittest

from guide_content import MANUAL_SECTIONS, manual_entries


class TestManual(unittest.TestCase):
    def test_every_section_has_three_tips(self) -> None:
        self.assertEqual(len(MANUAL_SECTIONS), 6)
        for section in MANUAL_SECTIONS:
            self.assertEqual(len(section.tips), 3, section.title)
            self.assertTrue(all(t.head and t.text for t in section.tips))

    def test_pro_templates_are_locked_for_free_users(self) -> None:
        free = manual_entries(is_pro=False)
        self.assertEqual([e.section.title for e in free], [s.title for s in MANUAL_SECTIONS])
        locked = [e.section.assistant for e in free if e.locked]
        self.assertEqual(locked, ["shot_list", "call_sheet"])
        self.assertFalse(any(e.locked for e in manual_entries(is_pro=True)))

    def test_free_sections_have_no_assistant(self) -> None:
        for section in MANUAL_SECTIONS:
            self.assertEqual(section.assistant is not None, section.pro_only)


if __name__ == "__main__":
    unittest.main()
