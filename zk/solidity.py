"""
Solidity Groth16 verifier generation from snarkjs verification keys
"""

from string import Template
from typing import Any, Dict, List, Sequence

# BN254 base field and scalar field
PRIME_Q = 21888242871839275222246405745257275088696311157297823662689037894645226208583
SNARK_SCALAR_FIELD = 21888242871839275222246405745257275088548364400416034343698204186575808495617

VERIFIER_TEMPLATE = Template("""// SPDX-License-Identifier: GPL-3.0
// Generated from the $circuit verification key. Do not edit.
pragma solidity ^0.8.0;

library Pairing {
    uint256 constant PRIME_Q = $prime_q;

    struct G1Point {
        uint256 X;
        uint256 Y;
    }

    // Coordinates are encoded as (imaginary, real)
    struct G2Point {
        uint256[2] X;
        uint256[2] Y;
    }

    function negate(G1Point memory p) internal pure returns (G1Point memory) {
        if (p.X == 0 && p.Y == 0) {
            return G1Point(0, 0);
        }
        return G1Point(p.X, PRIME_Q - (p.Y % PRIME_Q));
    }

    function plus(G1Point memory p1, G1Point memory p2) internal view returns (G1Point memory r) {
        uint256[4] memory input = [p1.X, p1.Y, p2.X, p2.Y];
        bool success;
        assembly {
            success := staticcall(sub(gas(), 2000), 6, input, 0x80, r, 0x40)
        }
        require(success, "pairing-add-failed");
    }

    function scalarMul(G1Point memory p, uint256 s) internal view returns (G1Point memory r) {
        uint256[3] memory input = [p.X, p.Y, s];
        bool success;
        assembly {
            success := staticcall(sub(gas(), 2000), 7, input, 0x60, r, 0x40)
        }
        require(success, "pairing-mul-failed");
    }

    function pairing(G1Point[4] memory p1, G2Point[4] memory p2) internal view returns (bool) {
        uint256[24] memory input;
        for (uint256 i = 0; i < 4; i++) {
            uint256 j = i * 6;
            input[j + 0] = p1[i].X;
            input[j + 1] = p1[i].Y;
            input[j + 2] = p2[i].X[0];
            input[j + 3] = p2[i].X[1];
            input[j + 4] = p2[i].Y[0];
            input[j + 5] = p2[i].Y[1];
        }
        uint256[1] memory out;
        bool success;
        assembly {
            success := staticcall(sub(gas(), 2000), 8, input, 0x300, out, 0x20)
        }
        require(success, "pairing-opcode-failed");
        return out[0] != 0;
    }
}

contract $contract_name {
    uint256 constant SNARK_SCALAR_FIELD = $scalar_field;

    struct VerifyingKey {
        Pairing.G1Point alfa1;
        Pairing.G2Point beta2;
        Pairing.G2Point gamma2;
        Pairing.G2Point delta2;
        Pairing.G1Point[] IC;
    }

    function verifyingKey() internal pure returns (VerifyingKey memory vk) {
        vk.alfa1 = $alpha1;
        vk.beta2 = $beta2;
        vk.gamma2 = $gamma2;
        vk.delta2 = $delta2;
        vk.IC = new Pairing.G1Point[]($ic_length);
$ic_points
    }

    function verifyProof(
        uint256[2] memory a,
        uint256[2][2] memory b,
        uint256[2] memory c,
        uint256[] memory input
    ) public view returns (bool) {
        VerifyingKey memory vk = verifyingKey();
        require(input.length + 1 == vk.IC.length, "verifier-bad-input");

        Pairing.G1Point memory vkX = Pairing.G1Point(0, 0);
        for (uint256 i = 0; i < input.length; i++) {
            require(input[i] < SNARK_SCALAR_FIELD, "verifier-gte-snark-scalar-field");
            vkX = Pairing.plus(vkX, Pairing.scalarMul(vk.IC[i + 1], input[i]));
        }
        vkX = Pairing.plus(vkX, vk.IC[0]);

        Pairing.G1Point[4] memory p1 = [
            Pairing.negate(Pairing.G1Point(a[0], a[1])),
            vk.alfa1,
            vkX,
            Pairing.G1Point(c[0], c[1])
        ];
        Pairing.G2Point[4] memory p2 = [
            Pairing.G2Point(b[0], b[1]),
            vk.beta2,
            vk.gamma2,
            vk.delta2
        ];
        return Pairing.pairing(p1, p2);
    }
}
""")


def _uint(value: Any) -> str:
    number = int(value)
    if number < 0 or number >= PRIME_Q:
        raise ValueError(f"Coordinate {value} outside the BN254 base field")
    return str(number)


def g1_literal(point: Sequence[Any]) -> str:
    """Pairing.G1Point literal from a snarkjs [x, y, z] point"""
    return f"Pairing.G1Point({_uint(point[0])}, {_uint(point[1])})"


def g2_literal(point: Sequence[Sequence[Any]]) -> str:
    """Pairing.G2Point literal from a snarkjs [[x0, x1], [y0, y1], z] point"""
    x, y = point[0], point[1]
    return (f"Pairing.G2Point([{_uint(x[1])}, {_uint(x[0])}], "
            f"[{_uint(y[1])}, {_uint(y[0])}])")


def render_groth16_verifier(verification_key: Dict[str, Any], contract_name: str = "Groth16Verifier",
                            circuit: str = "") -> str:
    """Render a Solidity verifier contract for a snarkjs Groth16 key"""
    protocol = verification_key.get('protocol', 'groth16')
    if protocol != 'groth16':
        raise ValueError(f"Unsupported protocol: {protocol}")
    if not contract_name.isidentifier():
        raise ValueError(f"Invalid contract name: {contract_name}")

    ic: List[Any] = verification_key['IC']
    if not ic:
        raise ValueError("Verification key has no IC points")
    n_public = verification_key.get('nPublic')
    if n_public is not None and int(n_public) + 1 != len(ic):
        raise ValueError(f"nPublic={n_public} does not match {len(ic)} IC points")

    ic_points = "\n".join(
        f"        vk.IC[{i}] = {g1_literal(point)};" for i, point in enumerate(ic)
    )

    return VERIFIER_TEMPLATE.substitute(
        circuit=circuit or contract_name,
        prime_q=PRIME_Q,
        scalar_field=SNARK_SCALAR_FIELD,
        contract_name=contract_name,
        alpha1=g1_literal(verification_key['vk_alpha_1']),
        beta2=g2_literal(verification_key['vk_beta_2']),
        gamma2=g2_literal(verification_key['vk_gamma_2']),
        delta2=g2_literal(verification_key['vk_delta_2']),
        ic_length=len(ic),
        ic_points=ic_points,
    )
