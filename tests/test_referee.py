import unittest

import chess

from llmchess_live.referee import CandidateMove, Referee

PROMOTION_FEN = "8/P7/8/8/8/8/8/k6K w - - 0 1"


def play(ref: Referee, *moves: str) -> None:
    for mv in moves:
        assert ref.apply_text(mv) is not None, mv


class RefereeMoveGateTests(unittest.TestCase):
    def test_legal_candidate_is_applied_and_recorded(self):
        ref = Referee()
        record = ref.apply_move(CandidateMove("e2", "e4"))
        self.assertIsNotNone(record)
        self.assertEqual(record.san, "e4")
        self.assertEqual(record.color, "w")
        self.assertEqual(record.piece, "p")
        self.assertEqual(record.flags, "b")
        self.assertEqual(record.before, chess.STARTING_FEN)
        self.assertEqual(record.after, ref.fen())
        self.assertEqual(ref.turn(), "b")

    def test_illegal_candidate_is_rejected_every_time(self):
        ref = Referee()
        before = ref.fen()
        for _ in range(2):
            self.assertIsNone(ref.apply_move(CandidateMove("e2", "e5")))
        self.assertEqual(ref.fen(), before)

    def test_wrong_side_and_malformed_squares_are_rejected(self):
        ref = Referee()
        self.assertIsNone(ref.apply_move(CandidateMove("e7", "e5")))
        self.assertIsNone(ref.apply_move(CandidateMove("z9", "e4")))
        self.assertIsNone(ref.apply_text("not a move"))
        self.assertEqual(ref.history(), [])

    def test_turn_alternates_strictly(self):
        ref = Referee()
        seen = [ref.turn()]
        for mv in ["e4", "e5", "Nf3", "Nc6", "Bb5", "a6"]:
            play(ref, mv)
            seen.append(ref.turn())
        self.assertEqual(seen, ["w", "b"] * 3 + ["w"])

    def test_promotion_defaults_to_queen(self):
        ref = Referee.from_fen(PROMOTION_FEN)
        record = ref.apply_move(CandidateMove("a7", "a8"))
        self.assertIsNotNone(record)
        self.assertEqual(record.promotion, "q")
        self.assertTrue(record.san.startswith("a8=Q"))
        self.assertIn("p", record.flags)

    def test_underpromotion_and_disallowed_promotion(self):
        ref = Referee.from_fen(PROMOTION_FEN)
        self.assertIsNone(ref.apply_move(CandidateMove("a7", "a8", "k")))
        record = ref.apply_move(CandidateMove("a7", "a8", "n"))
        self.assertEqual(record.san, "a8=N")

    def test_uci_text_without_promotion_letter(self):
        ref = Referee.from_fen(PROMOTION_FEN)
        candidate = ref.parse_text("a7a8")
        self.assertEqual(candidate, CandidateMove("a7", "a8", "q"))
        # parse_text never moves
        self.assertEqual(ref.fen(), PROMOTION_FEN)

    def test_capture_and_castling_flags(self):
        ref = Referee()
        play(ref, "e4", "d5")
        capture = ref.apply_text("exd5")
        self.assertEqual(capture.captured, "p")
        self.assertEqual(capture.flags, "c")
        castle_ref = Referee.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
        castle = castle_ref.apply_text("O-O")
        self.assertEqual(castle.flags, "k")
        self.assertIsNone(castle.captured)


class RefereeQueryTests(unittest.TestCase):
    def test_legal_moves_from_a_square(self):
        ref = Referee()
        self.assertEqual(len(ref.legal_moves()), 20)
        from_e2 = {m.san for m in ref.legal_moves("e2")}
        self.assertEqual(from_e2, {"e3", "e4"})
        self.assertEqual(ref.legal_moves("zz"), [])

    def test_checkmate_status(self):
        ref = Referee()
        play(ref, "f3", "e5", "g4", "Qh4#")
        status = ref.status()
        self.assertTrue(status.is_checkmate)
        self.assertTrue(status.is_game_over)
        self.assertTrue(status.is_check)
        self.assertEqual(status.result, "0-1")
        self.assertEqual(ref.legal_moves(), [])

    def test_stalemate_counts_as_draw(self):
        ref = Referee.from_fen("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1")
        status = ref.status()
        self.assertTrue(status.is_stalemate)
        self.assertTrue(status.is_draw)
        self.assertFalse(status.is_checkmate)
        self.assertEqual(status.result, "1/2-1/2")

    def test_serialize_round_trip(self):
        ref = Referee()
        play(ref, "e4", "c5", "Nf3", "d6", "d4", "cxd4")
        fen = ref.fen()
        self.assertEqual(Referee.from_fen(fen).fen(), fen)

    def test_reset_is_idempotent(self):
        ref = Referee()
        play(ref, "d4", "d5")
        ref.reset()
        first = ref.fen()
        ref.reset()
        self.assertEqual(ref.fen(), first)
        self.assertEqual(first, chess.STARTING_FEN)
        self.assertEqual(ref.history(), [])

    def test_history_and_pgn(self):
        ref = Referee()
        self.assertEqual(ref.pgn(), "")
        play(ref, "e4", "e5", "Nf3")
        self.assertEqual(ref.san_history(), ["e4", "e5", "Nf3"])
        self.assertEqual([r.color for r in ref.history()], ["w", "b", "w"])
        self.assertIn("1. e4 e5 2. Nf3", ref.pgn())

    def test_copy_is_independent(self):
        ref = Referee()
        play(ref, "e4")
        snap = ref.copy()
        play(ref, "e5")
        self.assertEqual(snap.san_history(), ["e4"])
        self.assertEqual(snap.turn(), "b")


if __name__ == "__main__":
    unittest.main()
